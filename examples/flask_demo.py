"""
Flask demo with AWS Signature V4 verification.

Usage:
    # Install dependencies
    pip install -e ".[flask]"

    # Create a credentials file (access_key:secret per line)
    echo "AKIDEXAMPLE:wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY" > sigaws_quickstart.creds

    # Run the server
    flask --app examples.flask_demo run --port 8010

    # Or directly
    python examples/flask_demo.py

Environment variables:
    SIGAWS_PROVIDER - "module:attribute" naming the provider
                      (default: QuickStartProvider configured from the variables below)
    SIGAWS_REGIONS - Comma separated allowed regions (default: us-east-1)
    SIGAWS_SERVICES - Comma separated allowed services (default: my-service)
    SIGAWS_CREDS_FILE - Credentials file (default: sigaws_quickstart.creds)
"""

import json
import logging
import os

from flask import Flask, g, jsonify, request

# Import from installed package
from sigaws_middleware import BodyParsers, JSONParser, QuickStartProvider, URLEncodedParser
from sigaws_middleware.middleware import BodyParserWSGIMiddleware, SigawsWSGIMiddleware

logging.basicConfig(
    format="%(asctime)s | %(levelname)8s | %(name)s | %(message)s",
    level=logging.INFO,
)

# Configuration from environment
PROVIDER = os.getenv("SIGAWS_PROVIDER") or QuickStartProvider.from_env()

app = Flask(__name__)

# Parse the body first, then verify
app.wsgi_app = BodyParserWSGIMiddleware(
    SigawsWSGIMiddleware(app.wsgi_app, provider=PROVIDER),
    parsers=BodyParsers([JSONParser(json.loads), URLEncodedParser()]),
)


@app.before_request
def extract_sigaws_ctxt():
    """Expose the verification context on Flask's g object."""
    g.sigaws_ctxt = request.environ.get("sigaws.ctxt")


@app.route("/whoami")
def whoami():
    """Returns the verified signer."""
    ctxt = g.sigaws_ctxt
    return jsonify({
        "access_key": ctxt.access_key,
        "region": ctxt.region,
        "service": ctxt.service,
        "signed_at": ctxt.signed_at,
        "presigned": ctxt.presigned,
    })


@app.route("/items", methods=["POST"])
def create_item():
    """Echoes the parsed body of a verified request."""
    return jsonify({
        "signed_by": g.sigaws_ctxt.access_key,
        "params": request.environ.get("sigaws.body_params"),
    })


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8010, debug=True)
