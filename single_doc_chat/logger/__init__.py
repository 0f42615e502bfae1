from .custom_logger import get_logger

# Global logger instance for entire project
GLOBAL_LOGGER = get_logger("single_doc_chat")

__all__ = ["GLOBAL_LOGGER", "get_logger"]
