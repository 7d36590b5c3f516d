"""HTTP middleware: metrics, error tracking, request throttling."""
