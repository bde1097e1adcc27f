from docloader.core.exceptions import (
    AppException,
    ConfigurationException,
    FieldMismatchException,
    TransformationException,
    MappingFieldException,
    DocumentRejectedException,
    StoreException,
    StoreWriteException,
    WriteFailureException,
)
from docloader.core.logging import setup_logging, get_logger

__all__ = [
    "AppException",
    "ConfigurationException",
    "FieldMismatchException",
    "TransformationException",
    "MappingFieldException",
    "DocumentRejectedException",
    "StoreException",
    "StoreWriteException",
    "WriteFailureException",
    "setup_logging",
    "get_logger",
]
