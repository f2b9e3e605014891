class ProctoringError(Exception):
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ProctoringError):
    status_code = 400


class NotFoundError(ProctoringError):
    status_code = 404


class InternalError(ProctoringError):
    status_code = 500
