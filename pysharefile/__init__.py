from .api import AuthClient, Session, ShareFileClient, Uploader, authenticate

__all__ = ["AuthClient", "Session", "ShareFileClient", "Uploader", "authenticate"]
