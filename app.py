"""
asicpoll - JSON HTTP API
"""
import logging
from flask import Flask, jsonify, request

import config
from asicpoll import MinerScanner

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Flask app
app = Flask(__name__)
scanner = MinerScanner()


@app.route('/api/health', methods=['GET'])
def health():
    """Liveness check"""
    return jsonify({
        'success': True,
        'schema_version': config.DATA_SCHEMA_VERSION
    })


@app.route('/api/miner/<ip>', methods=['GET'])
def get_miner(ip: str):
    """Detect and poll a single miner"""
    try:
        data = scanner.get_miner_data(ip)
        if data is None:
            return jsonify({
                'success': False,
                'error': f'No supported miner found at {ip}'
            }), 404
        return jsonify({
            'success': True,
            'miner': data.to_dict()
        })
    except Exception as e:
        logger.error(f"Error polling {ip}: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@app.route('/api/scan', methods=['POST'])
def scan():
    """Scan a subnet and poll every miner found"""
    data = request.get_json(silent=True) or {}
    subnet = data.get('subnet', config.NETWORK_SUBNET)

    try:
        found = scanner.scan(subnet)
        return jsonify({
            'success': True,
            'count': len(found),
            'miners': [miner.to_dict() for miner in found]
        })
    except ValueError as e:
        return jsonify({
            'success': False,
            'error': f'Invalid subnet: {e}'
        }), 400
    except Exception as e:
        logger.error(f"Scan error: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


if __name__ == '__main__':
    logger.info("Starting asicpoll API")
    app.run(
        host=config.FLASK_HOST,
        port=config.FLASK_PORT,
        debug=config.DEBUG
    )
