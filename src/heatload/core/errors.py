"""
Exceptions raised by heatload.

Every stage raises a HeatLoadException subclass so the pipeline can record
a failure against one resolution or one management unit and carry on.
Keyword context given to a subclass (file_path, source_crs, ...) lands in
``details``; values left as None are omitted.
"""

from typing import Any, Dict, List, Optional


class HeatLoadException(Exception):
    """
    Base class for heatload errors.

    Attributes:
        message: Message for the run summary
        error_code: Stable identifier of the error type
        details: Context for logs (paths, CRSs, shapes)
        suggestions: What the user can change to get past the error
    """

    error_code = "HEATLOAD_ERROR"
    default_suggestions: List[str] = []

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        **context: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = dict(details or {})
        self.details.update(
            (key, str(value) if key == "file_path" else value)
            for key, value in context.items()
            if value is not None
        )
        self.suggestions = list(suggestions or self.default_suggestions)

    def to_dict(self) -> Dict[str, Any]:
        """Error as a JSON-ready dictionary."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "suggestions": self.suggestions,
        }

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(error_code={self.error_code!r}, message={self.message!r})"


class ValidationError(HeatLoadException):
    """A missing input file, a malformed grid or an out-of-range parameter."""

    error_code = "VALIDATION_ERROR"
    default_suggestions = ["Check the input and try again"]

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        file_path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, field=field, file_path=file_path, **kwargs)


class ParseError(HeatLoadException):
    """A raster or vector file exists but cannot be read."""

    error_code = "PARSE_ERROR"
    default_suggestions = [
        "Verify the file opens in a GIS application",
        "Re-export the layer from its source",
    ]

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        file_type: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, file_path=file_path, file_type=file_type, **kwargs)


class CRSError(HeatLoadException):
    """Grid and boundary coordinates cannot be brought into one projected CRS."""

    error_code = "CRS_ERROR"
    default_suggestions = [
        "Reproject the input to the working CRS before running",
        "Check the layer has a coordinate reference system assigned",
    ]

    def __init__(
        self,
        message: str,
        source_crs: Optional[str] = None,
        target_crs: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, source_crs=source_crs, target_crs=target_crs, **kwargs)


class StorageError(HeatLoadException):
    """An output raster, summary table or cache entry could not be written."""

    error_code = "STORAGE_ERROR"
    default_suggestions = [
        "Check the output directory is writable",
        "Re-run with overwrite enabled to rebuild the cache",
    ]

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        file_path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, operation=operation, file_path=file_path, **kwargs)


class ConfigurationError(HeatLoadException):
    """Settings from the environment, .env or the command line are invalid."""

    error_code = "CONFIGURATION_ERROR"
    default_suggestions = [
        "Check HEATLOAD_* environment variables are set correctly",
        "Verify .env file syntax",
    ]

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, config_key=config_key, **kwargs)
