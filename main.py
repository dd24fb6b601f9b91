from flask import Flask, request, jsonify
from flask_cors import CORS
from postback_engine import PostbackProcessor
from postback_engine.config import Settings, create_store
from postback_engine.errors import InternalError, PostbackError
import logging

settings = Settings.from_env()

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for all routes (partner houses fire postbacks from their own domains)
CORS(app)

# Initialize the storage handle and the postback processor
store = create_store(settings)
processor = PostbackProcessor(store, postback_log=store)


@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "Postback Commission API",
        "version": "1.0",
        "endpoints": {
            "webhook": "/webhook/<house>/<event>?subid=&amount=&customer_id= [GET]",
            "postback": "/api/postback/<house>/<event> [GET]",
            "health": "/health [GET]"
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy", "service": "postback"}), 200


@app.route("/webhook/<house_identifier>/<event>", methods=["GET"])
@app.route("/api/postback/<house_identifier>/<event>", methods=["GET"])
def webhook(house_identifier, event):
    """
    Receive a postback from a partner house and compute the commission
    """
    logger.info(f"Postback received: {request.full_path} from {request.remote_addr}")

    try:
        result = processor.process_from_params(
            house_identifier,
            event,
            request.args,
            ip=request.remote_addr,
            raw=request.full_path,
        )
        return jsonify(result), 200

    except PostbackError as e:
        # Validation, not-found and storage outcomes carry their own status
        return jsonify(e.to_dict()), e.status_code

    except Exception as e:
        # Unexpected errors - log details but return generic message
        logger.error(f"Processing error: {str(e)}", exc_info=True)
        return jsonify({"error": InternalError.error}), 500


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=settings.port, debug=False)
