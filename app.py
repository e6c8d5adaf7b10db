"""
app.py — Flask entry point for the plant care journal API.

Builds the storage medium and the PlantRecordStore from configuration and
hands them to the blueprints through app.extensions (no module-level
client), configures structlog, and registers the JSON error handlers.

Run: python app.py → localhost:5000
"""

import logging
import os
from datetime import timedelta

import structlog
from flask import Flask, jsonify

from analysis_engine import MalformedResponse
from config import get_config
from database import PersistenceError, create_medium
from plant_store import PlantRecordStore
from routes.analysis import analysis_bp
from routes.main import main_bp
from routes.plants import plants_bp
from routes.statistics import statistics_bp


def configure_logging(level='INFO'):
    """Route structlog through stdlib logging and render JSON lines."""
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(format='%(message)s', level=numeric_level)
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(numeric_level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_app(test_config=None, store=None):
    """
    Create and configure the Flask application.

    Args:
        test_config: Mapping overlaid on the configuration class.
        store: Ready-made PlantRecordStore; built from configuration if None.
    """
    app = Flask(__name__)
    testing = bool(test_config and test_config.get('TESTING'))
    app.config.from_object(get_config('testing' if testing else None))
    if test_config:
        app.config.update(test_config)
    app.json.sort_keys = False

    configure_logging(app.config['LOG_LEVEL'])
    logger = structlog.get_logger(__name__)

    if store is None:
        medium = create_medium(app.config['PLANT_STORE_BACKEND'], app.config['PLANT_STORE_PATH'])
        store = PlantRecordStore(
            medium,
            watering_interval=timedelta(days=app.config['WATERING_INTERVAL_DAYS'])
        )
    app.extensions['plant_store'] = store
    logger.info("plant_store_ready", medium=store.medium.describe())

    # Register blueprints
    app.register_blueprint(main_bp)
    app.register_blueprint(analysis_bp)
    app.register_blueprint(plants_bp)
    app.register_blueprint(statistics_bp)

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(e):
        logger.error("persistence_error", error=str(e))
        return jsonify({
            'success': False,
            'error': 'STORAGE_ERROR',
            'message': 'Your plant journal could not be read or saved. Please try again.'
        }), 500

    @app.errorhandler(MalformedResponse)
    def handle_malformed_response(e):
        return jsonify({
            'success': False,
            'error': 'ANALYSIS_FAILED',
            'message': 'Unable to analyze this image. Please try again with a clearer photo.'
        }), 422

    @app.errorhandler(413)
    def handle_too_large(e):
        return jsonify({'success': False, 'error': 'PAYLOAD_TOO_LARGE'}), 413

    return app


if __name__ == '__main__':
    app = create_app()
    # Set FLASK_DEBUG=0 to disable the reloader and debugger
    debug = os.environ.get('FLASK_DEBUG', '1') != '0'
    app.run(host='localhost', port=5000, debug=debug)
