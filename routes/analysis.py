"""
routes/analysis.py — Plant analysis normalization route.

Provides:
- POST /analyze — Normalize the raw text reply of the vision model

The caller sends the model's reply untouched, either as JSON
{"text": "..."} or as a text/plain body. Calling the model itself happens
outside this service.

Responses:
- 200 {"success": true, "data": AnalysisResult}
- 200 {"success": false, "error": "NOT_A_PLANT", "message", "objectInfo"}
- 400 {"success": false, "error": "INVALID_REQUEST"}
- 422 {"success": false, "error": "ANALYSIS_FAILED"}  (see app.py)
"""

from flask import Blueprint, jsonify, request

from analysis_engine import extract_and_normalize
from models import NonPlantResult

analysis_bp = Blueprint('analysis', __name__)


def _raw_model_text():
    """Pull the model reply out of the request, or None."""
    if request.is_json:
        data = request.get_json(silent=True)
        if isinstance(data, dict) and isinstance(data.get('text'), str):
            return data['text']
        return None
    text = request.get_data(as_text=True)
    return text if text else None


@analysis_bp.route('/analyze', methods=['POST'])
def analyze():
    """Normalize a model reply into a plant analysis (JSON API)."""
    raw_text = _raw_model_text()
    if raw_text is None:
        return jsonify({
            'success': False,
            'error': 'INVALID_REQUEST',
            'message': 'No model response provided.'
        }), 400

    # MalformedResponse propagates to the app-level handler (422)
    result = extract_and_normalize(raw_text)

    if isinstance(result, NonPlantResult):
        return jsonify({
            'success': False,
            'error': 'NOT_A_PLANT',
            'message': result.message,
            'objectInfo': result.to_dict(),
        })

    return jsonify({'success': True, 'data': result.to_dict()})
