from flask import Flask, request, jsonify
from flask_cors import CORS
from deal_engine import DealProcessor
from deal_engine.processor import ENDPOINTS
from deal_engine.exceptions import DealEngineError
import os
import logging

# Configure logging
logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for all routes (the web and mobile clients call the API directly)
CORS(app)

# Initialize the deal processor
processor = DealProcessor()

@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "Roofing Deal Engine API",
        "version": "1.0",
        "endpoints": {
            **{path: f"{path} [POST]" for path in ENDPOINTS},
            "statuses": "/statuses [GET]",
            "health": "/health [GET]"
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy"}), 200


@app.route("/statuses", methods=["GET"])
def list_statuses():
    """Status taxonomy"""
    return jsonify(processor.process("statuses", {})), 200


def _run(action):
    try:
        input_data = request.get_json(force=True, silent=True)

        if not isinstance(input_data, dict) or not input_data:
            return jsonify({
                "error": "No input data provided",
                "status": "failed"
            }), 400

        deal_id = (input_data.get("deal") or {}).get("id") or input_data.get("deal_id", "Unknown")
        logger.info(f"{action}: deal {deal_id}")

        result = processor.process(action, input_data)

        return jsonify(result), 200

    except DealEngineError as e:
        # Policy denial, surfaced to the user unchanged
        logger.info(f"{action} denied: {e.message}")
        return jsonify(e.to_dict()), e.http_status

    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Validation error: {str(e)}")
        return jsonify({
            "error": str(e),
            "status": "validation_failed"
        }), 400

    except Exception as e:
        logger.error(f"Processing error: {str(e)}", exc_info=True)
        return jsonify({
            "error": "An unexpected error occurred during processing",
            "status": "failed"
        }), 500


def _register(path, action):
    endpoint = action + "_endpoint"
    app.add_url_rule(path, endpoint, lambda: _run(action), methods=["POST"])


for _path, _action in ENDPOINTS.items():
    _register(_path, _action)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
