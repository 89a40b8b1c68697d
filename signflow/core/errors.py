"""
Typed failures raised by the signing services.

Each error carries the HTTP status the API layer answers with. Nothing in
the core retries: signing is not idempotent, so the caller decides.
"""


class SignflowError(Exception):
    """Base class for every failure surfaced to callers"""
    status_code = 500

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)

    @property
    def message(self) -> str:
        return str(self)


class DocumentNotFound(SignflowError):
    """Document not found"""
    status_code = 404


class DocumentNotSigned(SignflowError):
    """Document has not been signed yet"""
    status_code = 412


class InvalidDocument(SignflowError):
    """Uploaded file is not a usable PDF document"""
    status_code = 400

    def __init__(self, message: str = None, status_code: int = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class InvalidToken(SignflowError):
    """Invalid signature token"""
    status_code = 404


class WorkflowNotPending(SignflowError):
    """This signature workflow is no longer pending"""
    status_code = 409


class WorkflowExpired(SignflowError):
    """The signature link has expired"""
    status_code = 410


class InvalidWorkflowDefinition(SignflowError):
    """Invalid signature workflow definition"""
    status_code = 400


class MissingSignatureMaterial(SignflowError):
    """Signing material required for this signature kind was not supplied"""
    status_code = 400


class UnsupportedSignatureKind(SignflowError):
    """Unsupported signature kind"""
    status_code = 400


class CertificateLoadError(SignflowError):
    """Certificate container could not be loaded"""
    status_code = 400


class NoCertificateFound(SignflowError):
    """No certificate found in the certificate container"""
    status_code = 400


class SigningError(SignflowError):
    """Failed to sign the PDF document"""
    status_code = 500


class VerificationError(SignflowError):
    """Failed to verify the document signatures"""
    status_code = 500
