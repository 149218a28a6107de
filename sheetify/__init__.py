"""Extract script and glossary tables from PDF page images."""

__version__ = "0.1.0"

# Re-export the main entry points for convenience
from .config import Config
from .modes import FOREIGN_NAMES, LINES, Mode, Row, get_mode
from .processor import DocumentProcessor
from .providers import InferenceProvider, OpenAIProvider, ProviderFactory

__all__ = [
    "__version__",
    "Config",
    "DocumentProcessor",
    "FOREIGN_NAMES",
    "InferenceProvider",
    "LINES",
    "Mode",
    "OpenAIProvider",
    "ProviderFactory",
    "Row",
    "get_mode",
]
