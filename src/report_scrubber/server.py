"""HTTP sidecar server for report-scrubber.

Runs as a lightweight stdlib HTTP server on localhost so a warehouse
loader can call it per report instead of spawning a process each time.

Endpoints:
    POST /redact              — {"text": ..., "scrub_terms": [...] | "a,b"}
    POST /strip-boilerplate   — {"text": ...}
    POST /gatekeep            — {"text": ...}  → {"text": ... | null, "discarded": bool}
    POST /validate-nhs        — {"value": ...} → {"value": ... | null, "valid": bool}
    POST /reload-boilerplate  — re-fetch dynamic boilerplate rules
    POST /reload-wipeout      — re-fetch dynamic wipeout rules
    GET  /health              — Health check

All endpoints expect/return JSON.
"""

from __future__ import annotations
import json
import logging
import os
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from .cleaning import validate_nhs_number
from .config import create_context, load_from_env
from .context import RedactionContext

logger = logging.getLogger(__name__)

DEFAULT_PORT = int(os.environ.get("REPORT_SCRUBBER_PORT", "18792"))

# Shared state
_context: RedactionContext | None = None


def _get_context() -> RedactionContext:
    global _context
    if _context is None:
        _context = create_context(load_from_env())
    return _context


def handle(path: str, body: dict[str, Any], context: RedactionContext) -> tuple[int, Any]:
    """Dispatch one POST request.  Returns (status, payload)."""
    if path == "/redact":
        scrub_terms = body.get("scrub_terms")
        if scrub_terms is not None and not isinstance(scrub_terms, (str, list)):
            return 400, {"error": "scrub_terms must be a list or a comma-separated string"}
        text = context.redact(body.get("text"), scrub_terms)
        return 200, {"text": text}

    if path == "/strip-boilerplate":
        return 200, {"text": context.strip_boilerplate(body.get("text"))}

    if path == "/gatekeep":
        kept = context.gatekeep(body.get("text"))
        return 200, {"text": kept, "discarded": kept is None}

    if path == "/validate-nhs":
        raw = body.get("value")
        value = validate_nhs_number(None if raw is None else str(raw))
        return 200, {"value": value, "valid": value is not None}

    if path == "/reload-boilerplate":
        diagnostic = context.reload_boilerplate()
        return 200, {"status": "reloaded" if diagnostic is None else "error",
                     "diagnostic": diagnostic,
                     "rules": len(context.boilerplate_rules)}

    if path == "/reload-wipeout":
        diagnostic = context.reload_wipeout()
        return 200, {"status": "reloaded" if diagnostic is None else "error",
                     "diagnostic": diagnostic,
                     "rules": len(context.wipeout_rules)}

    return 404, {"error": "not found"}


class ScrubberHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the report-scrubber sidecar."""

    def _read_json(self) -> dict[str, Any]:
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length).decode("utf-8")
        return json.loads(body) if body else {}

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self) -> None:
        if self.path == "/health":
            context = _get_context()
            self._respond(200, {
                "status": "ok",
                "lexicon_size": len(context.lexicon),
                "boilerplate_rules": len(context.boilerplate_rules),
                "wipeout_rules": len(context.wipeout_rules),
            })
        else:
            self._respond(404, {"error": "not found"})

    def do_POST(self) -> None:
        try:
            body = self._read_json()
        except (ValueError, UnicodeDecodeError) as e:
            self._respond(400, {"error": f"invalid JSON body: {e}"})
            return
        if not isinstance(body, dict):
            self._respond(400, {"error": "JSON body must be an object"})
            return
        try:
            status, payload = handle(self.path, body, _get_context())
        except Exception as e:
            logger.exception("request to %s failed", self.path)
            status, payload = 500, {"error": str(e)}
        self._respond(status, payload)


def serve(port: int = DEFAULT_PORT, context: RedactionContext | None = None) -> None:
    """Start the report-scrubber HTTP sidecar."""
    global _context
    if context is not None:
        _context = context
    ctx = _get_context()
    diagnostic = ctx.ensure_dynamic_rules()
    if diagnostic:
        logger.warning("dynamic rules not loaded: %s", diagnostic)

    server = ThreadingHTTPServer(("127.0.0.1", port), ScrubberHandler)
    logger.info("report-scrubber sidecar listening on http://127.0.0.1:%d", port)
    logger.info("  lexicon: %d words", len(ctx.lexicon))
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("shutting down")
        server.shutdown()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="report-scrubber HTTP sidecar")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    serve(port=args.port)
