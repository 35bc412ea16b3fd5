from __future__ import annotations


class TaskFlowError(Exception):
  status_code = 500

  def __init__(self, message: str) -> None:
    super().__init__(message)
    self.message = message


class ValidationError(TaskFlowError):
  status_code = 400


class AuthError(TaskFlowError):
  status_code = 401


class NotFoundError(TaskFlowError):
  status_code = 404


class ConflictError(TaskFlowError):
  # Duplicate email is reported as a plain bad request.
  status_code = 400


class UpstreamError(TaskFlowError):
  status_code = 500
