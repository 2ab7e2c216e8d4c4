"""Infrastructure shared by every module: logging, request context, stores."""
