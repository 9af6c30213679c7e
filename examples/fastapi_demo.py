"""
FastAPI demo with AWS Signature V4 verification.

Usage:
    # Install dependencies
    pip install -e ".[fastapi]"

    # Create a credentials file (access_key:secret per line)
    echo "AKIDEXAMPLE:wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY" > sigaws_quickstart.creds

    # Run the server
    uvicorn examples.fastapi_demo:app --port 8009 --reload

    # Or directly
    python examples/fastapi_demo.py

Test with the AWS CLI or any SigV4 signer, e.g. awscurl:
    awscurl --service my-service --region us-east-1 \
        --access_key AKIDEXAMPLE --secret_key wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY \
        -X POST -d '{"name": "widget"}' -H "Content-Type: application/json" \
        http://localhost:8009/items

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

from fastapi import FastAPI, Request

# Import from installed package
from sigaws_middleware import (
    BodyParserASGIMiddleware,
    BodyParsers,
    JSONParser,
    QuickStartProvider,
    SigawsASGIMiddleware,
    URLEncodedParser,
)

logging.basicConfig(
    format="%(asctime)s | %(levelname)8s | %(name)s | %(message)s",
    level=logging.INFO,
)

# Configuration from environment
PROVIDER = os.getenv("SIGAWS_PROVIDER") or QuickStartProvider.from_env()

app = FastAPI(
    title="SigV4 Demo API",
    description="Demo API with AWS Signature V4 verification",
    version="0.1.0",
)

# Middleware added last runs first: parse the body, then verify
app.add_middleware(SigawsASGIMiddleware, provider=PROVIDER)
app.add_middleware(
    BodyParserASGIMiddleware,
    parsers=BodyParsers([JSONParser(json.loads), URLEncodedParser()]),
)


@app.get("/whoami")
async def whoami(request: Request):
    """Returns the verified signer."""
    ctxt = request.state.sigaws_ctxt
    return {
        "access_key": ctxt.access_key,
        "region": ctxt.region,
        "service": ctxt.service,
        "signed_at": ctxt.signed_at,
        "presigned": ctxt.presigned,
    }


@app.post("/items")
async def create_item(request: Request):
    """Echoes the parsed body of a verified request."""
    return {
        "signed_by": request.state.sigaws_ctxt.access_key,
        "params": getattr(request.state, "body_params", None),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8009)
