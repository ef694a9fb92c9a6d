from flask import Flask, jsonify
from flask_cors import CORS
import os

from data_refresher import DataRefresher
from logger import setup_logger, get_current_log_file
from snapshot_builder import SnapshotBuilder, format_timestamp, utc_now
from snapshot_store import SnapshotStore
from supply_config import DATA_DIR, SERVICE_NAME
from wrapped_balances import EtherscanBalanceLookup

# Set up logger
logger = setup_logger('app')


def create_app(refresher: DataRefresher) -> Flask:
    """Create the Flask app serving the supply snapshot owned by ``refresher``."""
    app = Flask(__name__)
    CORS(app)  # Enable CORS for dashboard access from any origin

    def supply_response():
        try:
            snapshot = refresher.ensure_snapshot()
            return jsonify(snapshot.to_json())
        except Exception as e:
            logger.error(f"Error serving supply data: {e}")
            return jsonify({'error': 'Failed to fetch supply data'}), 500

    @app.route('/api/supply', methods=['GET'])
    def get_supply():
        """Current supply snapshot (built synchronously if none is saved yet)."""
        return supply_response()

    @app.route('/api/data', methods=['GET'])
    def get_data():
        """Alias for /api/supply used by the dashboard."""
        return supply_response()

    @app.route('/api/metadata', methods=['GET'])
    def get_metadata():
        """When the data was last refreshed and when the next refresh is due."""
        try:
            return jsonify(refresher.store.load_marker().to_json())
        except Exception as e:
            logger.error(f"Error serving metadata: {e}")
            return jsonify({'error': 'Failed to fetch metadata'}), 500

    @app.route('/api/refresh', methods=['POST'])
    def refresh_data():
        """Manual refresh. Waits for an in-flight refresh instead of starting a second one."""
        logger.info("Manual refresh requested...")
        try:
            snapshot = refresher.refresh(wait=True)
        except Exception as e:
            logger.error(f"Error during manual refresh: {e}")
            return jsonify({
                'success': False,
                'error': 'Failed to refresh data',
                'message': str(e),
            }), 500

        return jsonify({
            'success': True,
            'message': 'Data refreshed successfully',
            'cardsCount': len(snapshot.cards),
            'lastUpdated': format_timestamp(snapshot.generated_at),
        })

    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        return jsonify({
            'status': 'ok',
            'timestamp': format_timestamp(utc_now()),
            'service': SERVICE_NAME,
        })

    return app


def create_default_refresher() -> DataRefresher:
    builder = SnapshotBuilder(EtherscanBalanceLookup())
    return DataRefresher(builder, SnapshotStore(DATA_DIR))


def main() -> int:
    port = int(os.environ.get('PORT', 3000))
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'

    refresher = create_default_refresher()
    try:
        refresher.start()
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        return 1

    app = create_app(refresher)

    logger.info("========================================")
    logger.info(SERVICE_NAME)
    logger.info("========================================")
    logger.info(f"Server running on http://localhost:{port}")
    logger.info("API Endpoints:")
    logger.info("  GET  /api/supply   - Get supply data")
    logger.info("  GET  /api/metadata - Get metadata")
    logger.info("  POST /api/refresh  - Manual refresh")
    logger.info("  GET  /api/health   - Health check")
    logger.info(f"Logging to {get_current_log_file()}")
    logger.info("========================================")

    # Reloader would run a second refresh timer
    app.run(host='0.0.0.0', port=port, debug=debug, use_reloader=False)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
