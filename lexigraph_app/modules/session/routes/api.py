# File: lexigraph_app/modules/session/routes/api.py
import asyncio

from flask import request, jsonify, current_app

from lexigraph_app.core.error_handlers import ValidationError, success_response
from lexigraph_app.modules.graph.schemas import Rect

from .. import blueprint
from ..interface import SessionInterface
from ..services.learning_session import parse_viewport


def _json():
    return request.get_json(silent=True) or {}


def _require(data, field):
    value = data.get(field)
    if value is None or value == '':
        raise ValidationError(f"'{field}' is required", errors={field: 'required'})
    return value


def _respond(session, status=200, **extra):
    data = {'view': session.view()}
    for key, value in extra.items():
        data[key] = value.to_dict() if hasattr(value, 'to_dict') else value
    return jsonify(success_response(data)), status


@blueprint.route('/api/sessions', methods=['POST'])
def api_create_session():
    """Create a session from study groups, or a review session from card ids."""
    data = _json()
    if data.get('groups'):
        session = SessionInterface.create_group_session(data['groups'])
    elif data.get('card_ids'):
        session = SessionInterface.create_review_session(data['card_ids'])
    else:
        raise ValidationError('Provide either groups or card_ids')

    viewport = parse_viewport(data.get('viewport'))
    if viewport:
        session.overlay_moved(Rect.from_dict(data.get('overlay')), viewport)

    current_app.logger.info(f"Session {session.id} started in {session.mode} mode")
    return _respond(session, status=201)


@blueprint.route('/api/sessions/<session_id>', methods=['GET'])
def api_get_session(session_id):
    session = SessionInterface.get_session(session_id)
    with session.lock:
        return _respond(session)


@blueprint.route('/api/sessions/<session_id>', methods=['DELETE'])
def api_end_session(session_id):
    session = SessionInterface.end_session(session_id)
    current_app.logger.info(f"Session {session_id} ended")
    return jsonify(success_response({'stats': session.controller.stats.to_dict()}))


@blueprint.route('/api/sessions/<session_id>/know', methods=['POST'])
def api_know(session_id):
    session = SessionInterface.get_session(session_id)
    with session.lock:
        result = asyncio.run(session.know(str(_require(_json(), 'card_id'))))
        return _respond(session, result=result)


@blueprint.route('/api/sessions/<session_id>/forgot', methods=['POST'])
def api_forgot(session_id):
    session = SessionInterface.get_session(session_id)
    with session.lock:
        result = asyncio.run(session.forgot(str(_require(_json(), 'card_id'))))
        return _respond(session, result=result)


@blueprint.route('/api/sessions/<session_id>/choice', methods=['POST'])
def api_choose_answer(session_id):
    data = _json()
    session = SessionInterface.get_session(session_id)
    with session.lock:
        result = asyncio.run(session.choose_answer(str(_require(data, 'card_id')), _require(data, 'selected')))
        return _respond(session, result=result)


@blueprint.route('/api/sessions/<session_id>/spelling', methods=['POST'])
def api_submit_spelling(session_id):
    data = _json()
    session = SessionInterface.get_session(session_id)
    with session.lock:
        result = asyncio.run(session.submit_spelling(str(_require(data, 'card_id')), str(data.get('text') or '')))
        return _respond(session, result=result)


@blueprint.route('/api/sessions/<session_id>/review', methods=['POST'])
def api_review(session_id):
    data = _json()
    try:
        grade = int(_require(data, 'grade'))
    except (TypeError, ValueError):
        raise ValidationError('grade must be an integer 1-4', errors={'grade': data.get('grade')})
    session = SessionInterface.get_session(session_id)
    with session.lock:
        result = asyncio.run(session.review(str(_require(data, 'card_id')), grade))
        return _respond(session, result=result)


@blueprint.route('/api/sessions/<session_id>/familiar', methods=['POST'])
def api_mark_familiar(session_id):
    session = SessionInterface.get_session(session_id)
    with session.lock:
        removed = asyncio.run(session.mark_familiar(str(_require(_json(), 'card_id'))))
        return _respond(session, removed=removed)


@blueprint.route('/api/sessions/<session_id>/node-clicked', methods=['POST'])
def api_node_clicked(session_id):
    session = SessionInterface.get_session(session_id)
    with session.lock:
        card = session.node_clicked(str(_require(_json(), 'node_id')))
        return _respond(session, card=card.to_dict() if card else None)


@blueprint.route('/api/sessions/<session_id>/overlay', methods=['POST'])
def api_overlay_moved(session_id):
    data = _json()
    session = SessionInterface.get_session(session_id)
    with session.lock:
        session.overlay_moved(Rect.from_dict(data.get('overlay')), parse_viewport(data.get('viewport')))
        return _respond(session)


@blueprint.route('/api/sessions/<session_id>/layout', methods=['POST'])
def api_sync_layout(session_id):
    positions = _json().get('positions') or {}
    if not isinstance(positions, dict):
        raise ValidationError('positions must map node ids to [x, y]')
    session = SessionInterface.get_session(session_id)
    try:
        layout = {str(k): (float(v[0]), float(v[1])) for k, v in positions.items()}
    except (TypeError, ValueError, IndexError, KeyError):
        raise ValidationError('positions must map node ids to [x, y]')
    with session.lock:
        session.sync_layout(layout)
        return _respond(session)


@blueprint.route('/api/sessions/<session_id>/pan', methods=['POST'])
def api_pan_to_card(session_id):
    data = _json()
    overlay = Rect.from_dict(_require(data, 'overlay'))
    try:
        zoom = float(data.get('zoom') or 1.0)
    except (TypeError, ValueError):
        raise ValidationError('zoom must be a number')
    session = SessionInterface.get_session(session_id)
    with session.lock:
        camera = session.pan_to_card(overlay, zoom)
        return _respond(session, camera=camera.to_dict() if camera else None)


@blueprint.route('/api/sessions/<session_id>/graph/rebuild', methods=['POST'])
def api_rebuild_graph(session_id):
    session = SessionInterface.get_session(session_id)
    with session.lock:
        snapshot = asyncio.run(session.rebuild_graph())
        return _respond(session, rebuilt=snapshot is not None)


@blueprint.route('/api/sessions/<session_id>/graph/example', methods=['GET'])
def api_edge_example(session_id):
    source = _require(request.args, 'source')
    target = _require(request.args, 'target')
    session = SessionInterface.get_session(session_id)
    example = asyncio.run(session.edge_example(source, target))
    return jsonify(success_response({'source': source, 'target': target, 'example': example}))


@blueprint.route('/api/sessions/<session_id>/related', methods=['GET'])
def api_related_words(session_id):
    word = _require(request.args, 'word')
    session = SessionInterface.get_session(session_id)
    related = asyncio.run(session.related_words(word))
    return jsonify(success_response({'word': word, 'related': related}))
