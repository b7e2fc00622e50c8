"""
Roll Profile Viewer - Web Interface
Flask JSON API serving a roll surface plus linked CD/MD profile traces,
all colored by a shared banded color scale.

The front end (Plotly) draws the returned descriptors and posts clicked
positions back to /api/sections.
"""

import time
import logging
import threading
import argparse
from dataclasses import asdict
from pathlib import Path
from typing import Dict, Optional

import numpy as np
from flask import Flask, request, jsonify

from config import get_config
from src.compute.color_scale import ColorScale
from src.compute.multi_color_traces import (
    ProfileData,
    build_multi_color_traces,
    traces_to_dicts,
)
from src.data.roll_data import (
    extract_row,
    find_position_index,
    generate_roll_data,
    make_axis,
    transpose_array,
    validate_roll_field,
)
from src.utils.errors import ConfigurationError, ValidationError


# =============================================================================
# LOGGING SETUP
# =============================================================================
def setup_logging(log_dir: str = "logs"):
    """Configure structured logging with rotation."""
    from logging.handlers import RotatingFileHandler

    log_path = Path(log_dir)
    log_path.mkdir(exist_ok=True)

    # Max 5MB per file, keep 3 backup files
    file_handler = RotatingFileHandler(
        log_path / 'app.log',
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=3
    )
    file_handler.setLevel(logging.DEBUG)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.INFO)  # Less verbose console output

    formatter = logging.Formatter('%(asctime)s | %(name)s | %(levelname)s | %(message)s')
    file_handler.setFormatter(formatter)
    stream_handler.setFormatter(formatter)

    logging.basicConfig(
        level=logging.DEBUG,
        handlers=[file_handler, stream_handler]
    )

setup_logging(get_config().log_dir)
logger = logging.getLogger(__name__)

# =============================================================================
# PARAMETER VALIDATION
# =============================================================================
PARAMETER_RULES = {
    'n_rows': {'min': 2, 'max': 2000, 'integer': True},
    'n_cols': {'min': 2, 'max': 2000, 'integer': True},
    'nominal': {'min': 0.0},
    'noise': {'min': 0.0, 'max': 50.0},
    'sigma': {'min': 0.0, 'max': 20.0},
    'seed': {'min': 0, 'integer': True, 'nullable': True},  # null = random field
}

def safe_float(value, default=0.0):
    try:
        f = float(value)
        if np.isnan(f) or np.isinf(f):
            return default
        return f
    except (TypeError, ValueError):
        return default

def validate_parameters(params: dict) -> tuple:
    errors = []
    for param, rule in PARAMETER_RULES.items():
        if param not in params:
            continue
        value = params[param]
        if value is None and rule.get('nullable'):
            continue
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            errors.append(f"{param} must be numeric")
            continue
        if rule.get('integer') and not float(value).is_integer():
            errors.append(f"{param} must be an integer")
            continue
        if 'min' in rule and value < rule['min']:
            errors.append(f"{param} must be >= {rule['min']}")
        if 'max' in rule and value > rule['max']:
            errors.append(f"{param} must be <= {rule['max']}")
    return len(errors) == 0, errors


# =============================================================================
# FLASK APPLICATION
# =============================================================================
app = Flask(__name__)

current_state = {
    'chart': None,
    'lock': threading.RLock()
}


# =============================================================================
# CHART STATE
# =============================================================================
def build_chart_state(field=None, preset: Optional[str] = None) -> Dict:
    """Create the color scale, surface and both profile trace sets.

    Args:
        field: 2-D roll field (rows = MD scans, columns = CD positions).
            A synthetic field is generated when omitted.
        preset: COLOR_SCALE_PRESETS key, defaults to config.default_preset

    Returns:
        Chart state dict
    """
    cfg = get_config()
    if field is None:
        field = generate_roll_data()
    arr = validate_roll_field(field)

    color_scale = ColorScale.from_preset(preset or cfg.default_preset,
                                         blended=cfg.scale.blended)

    x_axis = make_axis(arr.shape[1], cfg.roll_data.cd_step)
    y_axis = make_axis(arr.shape[0], cfg.roll_data.md_step)

    surface = {
        'type': 'surface',
        'z': arr.tolist(),
        'x': x_axis,
        'y': y_axis,
        'showscale': True,
        'contours': {
            'x': {'highlight': False},
            'y': {'highlight': False},
            'z': {'highlight': False},
        },
    }
    color_scale.apply_scale_to_series(surface)

    # CD profile across the top chart, MD profile down the side chart
    profile_x = ProfileData(y_data=extract_row(arr, 0), x_data=x_axis,
                            trace_name='CD profile')
    traces_x, _ = build_multi_color_traces(color_scale, profile_x)
    for trace in traces_x:
        trace.extra['yaxis'] = 'y2'

    # Rows of the transposed field are the MD profiles, one per CD position
    columns = transpose_array(arr)
    profile_y = ProfileData(y_data=columns[0], x_data=y_axis,
                            transpose=True, trace_name='MD profile')
    traces_y, _ = build_multi_color_traces(color_scale, profile_y)
    for trace in traces_y:
        trace.extra['xaxis'] = 'x2'

    logger.info(f"Chart state built: field {arr.shape[0]}x{arr.shape[1]}, "
                f"{color_scale.n_colors} colors, range "
                f"[{color_scale.range_min:.2f}, {color_scale.range_max:.2f}]")

    return {
        'field': arr,
        'columns': columns,
        'x_axis': x_axis,
        'y_axis': y_axis,
        'color_scale': color_scale,
        'surface': surface,
        'profile_x': profile_x,
        'profile_y': profile_y,
        'traces_x': traces_x,
        'traces_y': traces_y,
        'section': {'row': 0, 'column': 0},
    }


def get_chart_state() -> Dict:
    with current_state['lock']:
        if current_state['chart'] is None:
            current_state['chart'] = build_chart_state()
        return current_state['chart']


def rebuild_profiles(chart: Dict) -> bool:
    """Refill both profile trace sets in place from the current section."""
    color_scale = chart['color_scale']
    _, ok_x = build_multi_color_traces(color_scale, chart['profile_x'], chart['traces_x'])
    _, ok_y = build_multi_color_traces(color_scale, chart['profile_y'], chart['traces_y'])
    if not (ok_x and ok_y):
        logger.warning(f"Profile rebuild failed (x={ok_x}, y={ok_y})")
    return ok_x and ok_y


def _profile_payload(chart: Dict) -> Dict:
    return {
        'traces_x': traces_to_dicts(chart['traces_x']),
        'traces_y': traces_to_dicts(chart['traces_y']),
        'ranges': {
            'xaxis2': asdict(chart['profile_y'].range),
            'yaxis2': asdict(chart['profile_x'].range),
        },
        'section': chart['section'],
    }


@app.after_request
def add_security_headers(response):
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'SAMEORIGIN'
    return response


# =============================================================================
# API ENDPOINTS
# =============================================================================
@app.route('/api/health')
def health_check():
    return jsonify({
        'status': 'ok',
        'timestamp': time.time(),
        'version': '1.0.0',
        'project': 'Roll Profile Viewer'
    })


@app.route('/api/figure')
def get_figure():
    with current_state['lock']:
        chart = get_chart_state()
        payload = _profile_payload(chart)
        payload['surface'] = chart['surface']
        payload['status'] = 'success'
        return jsonify(payload)


@app.route('/api/roll', methods=['POST'])
def regenerate_roll():
    """Replace the roll field with a freshly generated one."""
    params = request.json or {}

    is_valid, errors = validate_parameters(params)
    if not is_valid:
        logger.warning(f"Parameter validation failed: {errors}")
        return jsonify({'status': 'error', 'message': f'Parameter validation failed: {errors}'}), 400

    cfg = get_config().roll_data
    seed = params.get('seed', cfg.seed)
    try:
        field = generate_roll_data(
            n_rows=int(params.get('n_rows', cfg.n_rows)),
            n_cols=int(params.get('n_cols', cfg.n_cols)),
            nominal=float(params.get('nominal', cfg.nominal)),
            noise=float(params.get('noise', cfg.noise)),
            sigma=float(params.get('sigma', cfg.sigma)),
            seed=int(seed) if seed is not None else None,
        )
        chart = build_chart_state(field, preset=params.get('preset'))
    except (ConfigurationError, ValidationError) as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Roll generation error: {e}", exc_info=True)
        return jsonify({'status': 'error', 'message': str(e)}), 500

    with current_state['lock']:
        current_state['chart'] = chart

    return jsonify({
        'status': 'success',
        'shape': list(chart['field'].shape),
    })


@app.route('/api/sections', methods=['POST'])
def show_sections():
    """Move the profile sections to the clicked surface position."""
    params = request.json or {}
    if 'x' not in params or 'y' not in params:
        return jsonify({'status': 'error', 'message': 'x and y positions are required'}), 400

    x = safe_float(params.get('x'), default=None)
    y = safe_float(params.get('y'), default=None)
    if x is None or y is None:
        return jsonify({'status': 'error', 'message': 'x and y must be numeric'}), 400

    with current_state['lock']:
        chart = get_chart_state()
        column = find_position_index(chart['x_axis'], x)
        row = find_position_index(chart['y_axis'], y)

        chart['profile_x'].y_data = extract_row(chart['field'], row)
        chart['profile_y'].y_data = extract_row(chart['columns'], column)
        chart['section'] = {'row': row, 'column': column}

        if not rebuild_profiles(chart):
            return jsonify({'status': 'error', 'message': 'Profile rebuild failed'}), 500

        logger.debug(f"Sections moved to row={row}, column={column}")
        payload = _profile_payload(chart)
        payload['status'] = 'success'
        return jsonify(payload)


@app.route('/api/scale', methods=['POST'])
def update_scale():
    """Apply color scale settings and re-stamp surface and profiles.

    The settings are applied together: if any of them is rejected, none
    is applied and the chart is left as it was.
    """
    params = request.json or {}

    settings = {}
    if 'colors' in params:
        settings['colors'] = params['colors']
    if 'boundaries' in params:
        settings['boundaries'] = params['boundaries']
    if 'blended' in params:
        if not isinstance(params['blended'], bool):
            return jsonify({'status': 'error', 'message': 'blended must be true or false'}), 400
        settings['blended'] = params['blended']
    if 'target' in params:
        settings['target'] = params['target']

    with current_state['lock']:
        chart = get_chart_state()
        color_scale = chart['color_scale']
        if 'colors' in settings and settings['colors'] is None:
            settings['colors'] = color_scale.default_colors
        try:
            changed = color_scale.update(**settings)
        except (ConfigurationError, ValidationError) as e:
            logger.warning(f"Color scale update rejected: {e}")
            return jsonify({'status': 'error', 'message': str(e), 'changed': {}}), 400

        if any(changed.values()):
            color_scale.apply_scale_to_series(chart['surface'])
            rebuild_profiles(chart)
            logger.info(f"Color scale updated: {changed}")

        payload = _profile_payload(chart)
        payload.update({
            'status': 'success',
            'changed': changed,
            'colorscale': chart['surface']['colorscale'],
            'cmin': chart['surface']['cmin'],
            'cmax': chart['surface']['cmax'],
        })
        return jsonify(payload)


@app.route('/api/bands')
def get_bands():
    """Band extents and limit lines for legends and threshold shapes."""
    with current_state['lock']:
        color_scale = get_chart_state()['color_scale']

        bands = [color_scale.get_band_info(i) for i in range(color_scale.n_colors)]

        limit_lines = []
        for i in range(len(color_scale.get_boundaries())):
            limit = color_scale.get_limit_line_info(i)
            if limit is not None:
                limit_lines.append(limit)

        return jsonify({
            'status': 'success',
            'bands': bands,
            'limit_lines': limit_lines,
            'target': color_scale.get_target(),
            'blended': color_scale.get_blended(),
        })


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================
if __name__ == '__main__':
    cfg = get_config()
    parser = argparse.ArgumentParser(description='Roll Profile Viewer Server')
    parser.add_argument('--port', type=int, default=cfg.port, help='Port to run server on')
    parser.add_argument('--host', type=str, default=cfg.host, help='Host to bind to')
    parser.add_argument('--debug', action='store_true', help='Run in debug mode')
    args = parser.parse_args()

    logger.info(f"Starting Roll Profile Viewer server on {args.host}:{args.port}")

    app.run(
        host=args.host,
        port=args.port,
        debug=args.debug or cfg.debug,
        threaded=True
    )
