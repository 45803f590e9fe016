# crudbasico/exceptions.py


class TaskError(Exception):
    """Base class for errors surfaced to API clients as {"error": message}."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TaskError):
    status_code = 400


class InvalidIdentifier(ValidationError):
    def __init__(self, message: str = "Identificador inválido"):
        super().__init__(message)


class NotFound(TaskError):
    status_code = 404

    def __init__(self, message: str = "Tarea no encontrada"):
        super().__init__(message)


class StoreError(TaskError):
    """Persistence failure; the raw store message is passed through."""

    status_code = 500
