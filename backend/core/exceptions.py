"""
Domain errors raised by admin services.

Views translate these into HTTP responses (400 and 404); they carry enough
detail for the response body.
"""


class ValidationError(Exception):
    """Input is malformed or violates a collection rule. Nothing was written."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field

    def as_response_data(self):
        data = {'error': self.message}
        if self.field:
            data['field'] = self.field
        return data


class NotFoundError(Exception):
    """One or more referenced entities do not exist. Nothing was written."""

    def __init__(self, message, missing=None):
        super().__init__(message)
        self.message = message
        self.missing = [str(m) for m in (missing or [])]

    def as_response_data(self):
        data = {'error': self.message}
        if self.missing:
            data['missing'] = self.missing
        return data
