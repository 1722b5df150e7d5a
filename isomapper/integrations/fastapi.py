import logging

from fastapi import HTTPException, Request

from isomapper.errors import InvalidFormatError, InvalidXmlError, InvalidXmlNamespaceError, Iso20022Error
from isomapper.message import Iso20022Message
from isomapper.registry import from_json, from_xml

logger = logging.getLogger(__name__)


async def get_iso20022_message(request: Request) -> Iso20022Message:
    """
    FastAPI dependency that maps an incoming ISO 20022 payload to its typed
    message. XML bodies are detected by their leading ``<``; anything else
    is read as the JSON rendering of the document tree.
    """
    body = await request.body()
    if not body or not body.strip():
        raise HTTPException(status_code=400, detail="Empty payload")

    try:
        if body.lstrip().startswith(b"<"):
            return from_xml(body)
        return from_json(body)
    except (InvalidXmlNamespaceError, InvalidFormatError, InvalidXmlError) as exc:
        logger.debug("Rejected payload: %s", exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except Iso20022Error as exc:
        logger.debug("Could not map payload: %s", exc)
        raise HTTPException(status_code=400, detail=f"Parsing failed: {exc}") from exc
