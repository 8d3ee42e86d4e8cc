"""Audit logs for prompts and responses, and the thumbnail cache.

All writers here are best-effort: filesystem failures are logged and never
propagated to the analysis call.
"""

from pathlib import Path

from docenrich.logger import get_logger

logger = get_logger(__name__)

PROMPT_LOG_NAME = "prompt.txt"
RESPONSE_LOG_NAME = "response.txt"
DEFAULT_MAX_LOG_BYTES = 10 * 1024 * 1024


def rotate_if_oversized(path: Path, max_bytes: int) -> bool:
    """Delete a log file once it grows past max_bytes.

    Returns:
        True if the file was removed
    """
    try:
        if path.stat().st_size > max_bytes:
            path.unlink()
            return True
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("llm.trace.rotate_failed", path=str(path), error=str(e))
    return False


def _append(path: Path, text: str) -> Path | None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        logger.error("llm.trace.write_failed", path=str(path), error=str(e))
        return None
    return path


def record_prompt(
    log_dir: str | Path,
    system_prompt: str,
    content: str,
    max_bytes: int = DEFAULT_MAX_LOG_BYTES,
) -> Path | None:
    """Append the prompt and the (possibly truncated) content to the prompt log.

    Args:
        log_dir: Directory holding the audit logs
        system_prompt: System prompt sent to the model
        content: Document content sent to the model
        max_bytes: Size at which the log is deleted before appending

    Returns:
        Path to the log file, or None if writing failed
    """
    path = Path(log_dir) / PROMPT_LOG_NAME
    rotate_if_oversized(path, max_bytes)
    return _append(path, system_prompt + content + "\n\n")


def record_response(log_dir: str | Path, text: str) -> Path | None:
    """Append parsed response text to the response log."""
    return _append(Path(log_dir) / RESPONSE_LOG_NAME, text)


def cache_thumbnail(backend, document_id: int | str, thumbnail_dir: str | Path) -> Path | None:
    """Store the backend thumbnail for a document unless already cached.

    Args:
        backend: Object with a get_thumbnail_image(document_id) method, or None
        document_id: Document identifier
        thumbnail_dir: Cache directory

    Returns:
        Path to the cached image, or None when nothing was cached
    """
    cache_path = Path(thumbnail_dir) / f"{document_id}.png"
    if cache_path.exists():
        logger.debug("llm.thumbnail.cached", document_id=document_id)
        return cache_path

    if backend is None:
        return None

    try:
        image = backend.get_thumbnail_image(document_id)
    except Exception as e:
        logger.warning("llm.thumbnail.fetch_failed", document_id=document_id, error=str(e))
        return None

    if not image:
        logger.warning("llm.thumbnail.missing", document_id=document_id)
        return None

    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        cache_path.write_bytes(image)
    except OSError as e:
        logger.warning("llm.thumbnail.write_failed", document_id=document_id, error=str(e))
        return None
    return cache_path
