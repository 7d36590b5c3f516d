"""Localized user-facing messages for error codes."""

from typing import Literal

from prereg.utils.errors import ErrorCode

Language = Literal["ko", "en", "ja"]

SUPPORTED_LANGUAGES: tuple[str, ...] = ("ko", "en", "ja")
DEFAULT_LANGUAGE: Language = "ko"

ERROR_MESSAGES: dict[str, dict[str, str]] = {
    ErrorCode.INVALID_INPUT.value: {
        "ko": "입력값이 올바르지 않습니다.",
        "en": "Invalid input.",
        "ja": "入力が無効です。",
    },
    ErrorCode.INVALID_NAME.value: {
        "ko": "이름은 1-100자 이내로 입력해주세요.",
        "en": "Name must be 1-100 characters.",
        "ja": "名前は1〜100文字で入力してください。",
    },
    ErrorCode.INVALID_EMAIL.value: {
        "ko": "올바른 이메일 주소를 입력해주세요.",
        "en": "Please enter a valid email address.",
        "ja": "有効なメールアドレスを入力してください。",
    },
    ErrorCode.INVALID_NICKNAME.value: {
        "ko": "닉네임은 2자 이상 50자 이하의 한글, 영문, 숫자, -, _만 가능합니다.",
        "en": "Nickname must be 2-50 characters (letters, numbers, -, _).",
        "ja": "ニックネームは2文字以上50文字以下の文字、数字、-、_のみ使用可能です。",
    },
    ErrorCode.INVALID_PHONE.value: {
        "ko": "올바른 전화번호 형식을 입력해주세요 (예: 010-1234-5678).",
        "en": "Please enter a valid phone number.",
        "ja": "正しい電話番号形式を入力してください。",
    },
    ErrorCode.INVALID_REFERRAL_CODE.value: {
        "ko": "유효하지 않은 추천 코드입니다.",
        "en": "Invalid referral code.",
        "ja": "無効な紹介コードです。",
    },
    ErrorCode.VALIDATION_ERROR.value: {
        "ko": "입력값을 확인해주세요.",
        "en": "Please check the highlighted fields.",
        "ja": "入力内容を確認してください。",
    },
    ErrorCode.EMAIL_ALREADY_EXISTS.value: {
        "ko": "이미 등록된 이메일입니다.",
        "en": "This email is already registered.",
        "ja": "このメールアドレスは既に登録されています。",
    },
    ErrorCode.NICKNAME_ALREADY_EXISTS.value: {
        "ko": "이미 사용 중인 닉네임입니다.",
        "en": "This nickname is already taken.",
        "ja": "このニックネームは既に使用されています。",
    },
    ErrorCode.REFERRAL_CODE_NOT_FOUND.value: {
        "ko": "존재하지 않는 추천 코드입니다.",
        "en": "Referral code not found.",
        "ja": "紹介コードが見つかりません。",
    },
    ErrorCode.SELF_REFERRAL.value: {
        "ko": "자신의 추천 코드는 사용할 수 없습니다.",
        "en": "You cannot use your own referral code.",
        "ja": "自分の紹介コードは使用できません。",
    },
    ErrorCode.ALREADY_REFERRED.value: {
        "ko": "이미 추천을 받은 사용자입니다.",
        "en": "This user already has a referrer.",
        "ja": "このユーザーは既に紹介を受けています。",
    },
    ErrorCode.USER_NOT_FOUND.value: {
        "ko": "등록되지 않은 사용자입니다. 먼저 사전등록을 완료해주세요.",
        "en": "User not found. Please complete pre-registration first.",
        "ja": "ユーザーが見つかりません。先に事前登録を完了してください。",
    },
    ErrorCode.TIER_NOT_FOUND.value: {
        "ko": "존재하지 않는 보상 등급입니다.",
        "en": "Reward tier not found.",
        "ja": "報酬ティアが見つかりません。",
    },
    ErrorCode.REWARD_NOT_UNLOCKED.value: {
        "ko": "아직 달성하지 않은 보상입니다.",
        "en": "This reward has not been unlocked yet.",
        "ja": "この報酬はまだ解放されていません。",
    },
    ErrorCode.CODE_GENERATION_FAILED.value: {
        "ko": "사전등록에 실패했습니다. 다시 시도해주세요.",
        "en": "Pre-registration failed. Please try again.",
        "ja": "事前登録に失敗しました。もう一度お試しください。",
    },
    ErrorCode.DATABASE_ERROR.value: {
        "ko": "데이터베이스 오류가 발생했습니다. 잠시 후 다시 시도해주세요.",
        "en": "A database error occurred. Please try again later.",
        "ja": "データベースエラーが発生しました。後でもう一度お試しください。",
    },
    ErrorCode.CONNECTION_ERROR.value: {
        "ko": "네트워크 연결을 확인해주세요.",
        "en": "Please check your network connection.",
        "ja": "ネットワーク接続を確認してください。",
    },
    ErrorCode.AUTH_PROVIDER_ERROR.value: {
        "ko": "로그인 처리 중 오류가 발생했습니다.",
        "en": "An error occurred while signing in.",
        "ja": "ログイン処理中にエラーが発生しました。",
    },
    ErrorCode.RATE_LIMIT_EXCEEDED.value: {
        "ko": "너무 많은 로그인 시도가 있었습니다. {minutes}분 후에 다시 시도해주세요.",
        "en": "Too many attempts. Please try again in {minutes} minutes.",
        "ja": "試行回数が多すぎます。{minutes}分後にもう一度お試しください。",
    },
    ErrorCode.INVALID_CALLBACK.value: {
        "ko": "인증 링크가 만료되었습니다. 다시 시도해주세요.",
        "en": "The sign-in link has expired. Please try again.",
        "ja": "認証リンクの有効期限が切れました。もう一度お試しください。",
    },
    ErrorCode.UNKNOWN_ERROR.value: {
        "ko": "알 수 없는 오류가 발생했습니다.",
        "en": "An unknown error occurred.",
        "ja": "不明なエラーが発生しました。",
    },
}


def normalize_language(language: str | None) -> str:
    """Fall back to the default language for unknown values."""
    if language in SUPPORTED_LANGUAGES:
        return language  # type: ignore[return-value]
    return DEFAULT_LANGUAGE


def get_user_message(code: ErrorCode | str, language: str | None = None, **params: object) -> str:
    """Return the localized message for an error code.

    Unknown codes resolve to ``UNKNOWN_ERROR``. ``params`` are substituted
    into the template (e.g. ``minutes`` for rate-limit messages).
    """
    lang = normalize_language(language)
    key = code.value if isinstance(code, ErrorCode) else code
    templates = ERROR_MESSAGES.get(key) or ERROR_MESSAGES[ErrorCode.UNKNOWN_ERROR.value]
    template = templates.get(lang) or templates[DEFAULT_LANGUAGE]
    if params:
        return template.format(**params)
    return template
