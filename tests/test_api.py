"""
Integration tests for Flask API endpoints.

Tests cover:
1. Health check endpoint
2. Figure retrieval (surface + both profiles)
3. Section moves with in-place trace reuse
4. Color scale updates and rejected settings
5. Band / limit line listing
6. Roll regeneration and parameter validation
"""

import pytest

import app as app_module


@pytest.fixture
def app():
    """Create Flask test app."""
    flask_app = app_module.app
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def chart(small_roll_field):
    """Install a chart built from the small 4x5 field, NDC7 colors."""
    state = app_module.build_chart_state(small_roll_field, preset='NDC7')
    with app_module.current_state['lock']:
        app_module.current_state['chart'] = state
    yield state
    with app_module.current_state['lock']:
        app_module.current_state['chart'] = None


class TestHealthEndpoint:
    """Tests for /api/health endpoint."""

    def test_health_returns_ok(self, client):
        """Health check should return OK status."""
        response = client.get('/api/health')
        assert response.status_code == 200

        data = response.get_json()
        assert data['status'] == 'ok'
        assert 'timestamp' in data
        assert data['project'] == 'Roll Profile Viewer'

    def test_security_headers(self, client):
        response = client.get('/api/health')
        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert response.headers['X-Frame-Options'] == 'SAMEORIGIN'


class TestFigureEndpoint:
    """Tests for /api/figure endpoint."""

    def test_surface_colored_by_scale(self, client, chart):
        data = client.get('/api/figure').get_json()
        assert data['status'] == 'success'

        surface = data['surface']
        assert surface['type'] == 'surface'
        assert surface['cmin'] == pytest.approx(9.0)
        assert surface['cmax'] == pytest.approx(21.0)
        assert surface['autocolorscale'] is False
        assert len(surface['z']) == 4
        assert len(surface['z'][0]) == 5

    def test_profile_traces(self, client, chart):
        data = client.get('/api/figure').get_json()

        # One offset/data pair per NDC7 color
        assert len(data['traces_x']) == 14
        assert len(data['traces_y']) == 14
        assert all(t['yaxis'] == 'y2' for t in data['traces_x'])
        assert all(t['xaxis'] == 'x2' for t in data['traces_y'])
        assert all(t['orientation'] == 'v' for t in data['traces_y'])
        assert data['section'] == {'row': 0, 'column': 0}
        assert set(data['ranges']) == {'xaxis2', 'yaxis2'}

    def test_lazy_default_chart(self, client):
        with app_module.current_state['lock']:
            app_module.current_state['chart'] = None
        try:
            response = client.get('/api/figure')
            assert response.status_code == 200
            assert response.get_json()['surface']['type'] == 'surface'
        finally:
            with app_module.current_state['lock']:
                app_module.current_state['chart'] = None


class TestSectionsEndpoint:
    """Tests for /api/sections endpoint."""

    def test_move_sections(self, client, chart):
        # CD axis 0..40 step 10, MD axis 0..300 step 100
        response = client.post('/api/sections', json={'x': 25, 'y': 150})
        assert response.status_code == 200

        data = response.get_json()
        assert data['section'] == {'row': 2, 'column': 3}
        assert chart['profile_x'].y_data == [12.0, 14.0, 16.0, 18.0, 20.0]
        assert chart['profile_y'].y_data == [16.0, 17.0, 18.0, 19.0]

        plotted = {y for t in data['traces_x'][1::2] for y in t['y'] if y is not None}
        assert {12.0, 14.0, 16.0, 18.0, 20.0}.issubset(plotted)

    def test_traces_reused(self, client, chart):
        before = [id(t) for t in chart['traces_x']]
        client.post('/api/sections', json={'x': 40, 'y': 300})
        assert [id(t) for t in chart['traces_x']] == before
        assert app_module.current_state['chart']['traces_x'] is chart['traces_x']

    def test_missing_position(self, client, chart):
        response = client.post('/api/sections', json={'x': 10})
        assert response.status_code == 400
        assert 'required' in response.get_json()['message']

    def test_non_numeric_position(self, client, chart):
        response = client.post('/api/sections', json={'x': 'left', 'y': 0})
        assert response.status_code == 400
        assert 'numeric' in response.get_json()['message']


class TestScaleEndpoint:
    """Tests for /api/scale endpoint."""

    def test_update_boundaries(self, client, chart):
        response = client.post('/api/scale', json={
            'boundaries': [11, 13, 15, 17, 19, 21],
        })
        assert response.status_code == 200

        data = response.get_json()
        assert data['changed'] == {'boundaries': True}
        assert data['cmin'] == pytest.approx(10.0)
        assert data['cmax'] == pytest.approx(22.0)
        assert chart['surface']['cmin'] == pytest.approx(10.0)

    def test_unchanged_settings(self, client, chart):
        response = client.post('/api/scale', json={
            'boundaries': [10, 12, 14, 16, 18, 20],
        })
        assert response.get_json()['changed'] == {'boundaries': False}

    def test_blended_and_target(self, client, chart):
        response = client.post('/api/scale', json={'blended': True, 'target': 13})
        assert response.status_code == 200

        data = response.get_json()
        assert data['changed'] == {'blended': True, 'target': True}
        # Blended: discrete knots plus the target stop
        assert len(data['colorscale']) == 2 * 7 + 1
        assert chart['color_scale'].get_target() == 13.0

    def test_zero_span_rejected(self, client, chart):
        response = client.post('/api/scale', json={
            'boundaries': [15, 15, 15, 15, 15, 15],
        })
        assert response.status_code == 400
        assert chart['color_scale'].get_boundaries() == [10, 12, 14, 16, 18, 20]

    def test_wrong_color_count_rejected(self, client, chart):
        response = client.post('/api/scale', json={'colors': ['red', 'blue']})
        assert response.status_code == 400
        assert 'same size' in response.get_json()['message']

    def test_non_numeric_target_rejected(self, client, chart):
        response = client.post('/api/scale', json={'target': 'high'})
        assert response.status_code == 400

    def test_rejected_update_keeps_chart_in_sync(self, client, chart):
        colors = ['c0', 'c1', 'c2', 'c3', 'c4', 'c5', 'c6']
        response = client.post('/api/scale', json={
            'colors': colors,
            'boundaries': [5, 5, 5, 5, 5, 5],
        })
        assert response.status_code == 400
        assert response.get_json()['changed'] == {}

        color_scale = chart['color_scale']
        assert color_scale.colors[0] == 'darkblue'
        assert chart['surface']['colorscale'] == color_scale.scale
        assert chart['traces_x'][1].fillcolor == 'darkblue'

        # The same colors alone still count as a change and re-stamp everything
        response = client.post('/api/scale', json={'colors': colors})
        assert response.get_json()['changed'] == {'colors': True}
        assert chart['surface']['colorscale'] == color_scale.scale
        assert chart['traces_x'][1].fillcolor == 'c0'

    @pytest.mark.parametrize("bad_colors", [5, 'abcdefg', [1, 2, 3, 4, 5, 6, 7]])
    def test_malformed_colors_rejected(self, client, chart, bad_colors):
        response = client.post('/api/scale', json={'colors': bad_colors})
        assert response.status_code == 400
        assert response.get_json()['status'] == 'error'
        assert chart['color_scale'].colors[0] == 'darkblue'

    def test_null_colors_restore_defaults(self, client, chart):
        client.post('/api/scale', json={'colors': ['c0', 'c1', 'c2', 'c3', 'c4', 'c5', 'c6']})
        response = client.post('/api/scale', json={'colors': None})
        assert response.get_json()['changed'] == {'colors': True}
        assert chart['color_scale'].colors[0] == 'darkblue'

    @pytest.mark.parametrize("bad_flag", ['false', 0, None])
    def test_blended_must_be_boolean(self, client, chart, bad_flag):
        response = client.post('/api/scale', json={'blended': bad_flag})
        assert response.status_code == 400
        assert chart['color_scale'].get_blended() is False


class TestBandsEndpoint:
    """Tests for /api/bands endpoint."""

    def test_bands_and_limits(self, client, chart):
        data = client.get('/api/bands').get_json()
        assert data['status'] == 'success'

        bands = data['bands']
        assert len(bands) == 7
        assert bands[0] == {'color': 'darkblue', 'from': 9.0, 'to': 10.0}
        assert bands[-1] == {'color': 'red', 'from': 20.0, 'to': 21.0}

        limits = data['limit_lines']
        assert [line['limit'] for line in limits] == [10, 12, 14, 16, 18, 20]
        assert [line['color'] for line in limits] == [
            'darkblue', 'blue', 'cyan', 'yellow', 'orange', 'red',
        ]
        assert data['target'] == 15.0
        assert data['blended'] is False


class TestRollEndpoint:
    """Tests for /api/roll endpoint."""

    def test_regenerate(self, client, chart):
        response = client.post('/api/roll', json={'n_rows': 5, 'n_cols': 6, 'seed': 1})
        assert response.status_code == 200
        assert response.get_json()['shape'] == [5, 6]

        figure = client.get('/api/figure').get_json()
        assert len(figure['surface']['z']) == 5

    def test_out_of_range_rejected(self, client, chart):
        response = client.post('/api/roll', json={'n_rows': 1})
        assert response.status_code == 400
        assert 'validation failed' in response.get_json()['message']
        assert app_module.current_state['chart'] is chart

    def test_non_numeric_rejected(self, client, chart):
        response = client.post('/api/roll', json={'noise': 'lots'})
        assert response.status_code == 400

    @pytest.mark.parametrize("bad_seed", ['abc', 1.5, -1, True])
    def test_bad_seed_rejected(self, client, chart, bad_seed):
        response = client.post('/api/roll', json={'n_rows': 3, 'n_cols': 3, 'seed': bad_seed})
        assert response.status_code == 400
        assert app_module.current_state['chart'] is chart

    def test_null_seed_gives_random_field(self, client, chart):
        response = client.post('/api/roll', json={'n_rows': 3, 'n_cols': 4, 'seed': None})
        assert response.status_code == 200
        assert response.get_json()['shape'] == [3, 4]

    def test_fractional_size_rejected(self, client, chart):
        response = client.post('/api/roll', json={'n_rows': 3.5})
        assert response.status_code == 400

    def test_unknown_preset_rejected(self, client, chart):
        response = client.post('/api/roll', json={'n_rows': 3, 'n_cols': 3, 'preset': 'NDC99'})
        assert response.status_code == 400
        assert app_module.current_state['chart'] is chart


class TestParameterValidation:
    """Tests for validate_parameters / safe_float."""

    def test_defaults_in_range(self):
        defaults = app_module.get_config().roll_data
        is_valid, errors = app_module.validate_parameters({
            'n_rows': defaults.n_rows,
            'n_cols': defaults.n_cols,
            'nominal': defaults.nominal,
            'noise': defaults.noise,
            'sigma': defaults.sigma,
        })
        assert is_valid, errors

    def test_booleans_not_numeric(self):
        is_valid, errors = app_module.validate_parameters({'n_rows': True})
        assert not is_valid
        assert errors == ['n_rows must be numeric']

    def test_safe_float(self):
        assert app_module.safe_float('2.5') == 2.5
        assert app_module.safe_float('nan', default=None) is None
        assert app_module.safe_float(None, default=1.0) == 1.0
