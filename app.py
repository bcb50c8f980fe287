"""Flask app for the PDF splitter.

A browser front-end uploads one PDF per session, rearranges its pages
(duplicate, delete, rotate), marks split points or picks a fixed page
interval, optionally skips sections, and exports each remaining section as
its own ``split_{i}.pdf``. All page logic lives in the ``pdfsplit``
package; this module only maps HTTP requests onto a session.
"""

# ------------------------ All Imports ------------------------
import io
import os
import shutil
import threading
import time
import uuid
import zipfile
import logging
from flask import Flask, request, send_file, url_for
from werkzeug.utils import secure_filename
from pdfsplit.pdf_utils import LoadFailure, image_to_jpeg
from pdfsplit.sectioning import ExportFailure
from pdfsplit.session import SplitSession
from pdfsplit.session_store import SessionStore

# CSRF protection is optional for local development; disabled by default.
# Set ENABLE_CSRF=1 to enable Flask-WTF CSRF protection.
ENABLE_CSRF = os.environ.get('ENABLE_CSRF', '0') in ('1', 'true', 'True')
ENABLE_CLEANUP = os.environ.get('ENABLE_CLEANUP', '1') in ('1', 'true', 'True')

#------------------------ Configuration ------------------------
BASE_DIR = os.path.dirname(__file__)
OUTPUT_FOLDER = os.environ.get('OUTPUT_FOLDER', os.path.join(BASE_DIR, 'output'))
os.makedirs(OUTPUT_FOLDER, exist_ok=True)

#------------------------ Flask App ------------------------
app = Flask(__name__)
app.config['OUTPUT_FOLDER'] = OUTPUT_FOLDER
app.config['MAX_CONTENT_LENGTH'] = int(os.environ.get('MAX_CONTENT_LENGTH', 100 * 1024 * 1024))
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'pdf-splitter-dev-key')  # Replace in production!
app.config['WTF_CSRF_ENABLED'] = ENABLE_CSRF
app.config['SESSION_MAX_AGE'] = int(os.environ.get('SESSION_MAX_AGE', 3600))
app.config['CLEANUP_INTERVAL'] = int(os.environ.get('CLEANUP_INTERVAL', 60))
app.config['THUMB_HEIGHT'] = int(os.environ.get('THUMB_HEIGHT', 210))
app.config['PREVIEW_WIDTH'] = int(os.environ.get('PREVIEW_WIDTH', 900))

#------------------------ Logging ------------------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

#------------------------ CSRF Protection ------------------------
if ENABLE_CSRF:
    from flask_wtf import CSRFProtect
    csrf = CSRFProtect(app)
else:
    csrf = None

sessions = SessionStore()


class BadField(ValueError):
    pass


def _payload():
    data = request.get_json(silent=True)
    if data is None:
        return request.form
    if not isinstance(data, dict):
        raise BadField('request body must be a JSON object')
    return data


def _int_field(name: str) -> int:
    value = _payload().get(name)
    if value is None or isinstance(value, bool):
        raise BadField(f'missing integer field: {name}')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadField(f'field {name} must be an integer')


def _state(sid: str, session: SplitSession):
    return {'session_id': sid, **session.to_dict()}


#------------------------ Cleanup Old Files Thread ------------------------
def cleanup_old_exports(max_age_sec):
    """Remove export folders older than max_age_sec."""
    folder = app.config['OUTPUT_FOLDER']
    if not os.path.exists(folder):
        return
    now = time.time()
    for name in os.listdir(folder):
        path = os.path.join(folder, name)
        try:
            if os.path.getmtime(path) >= now - max_age_sec:
                continue
            if os.path.isdir(path):
                shutil.rmtree(path)
            else:
                os.remove(path)
        except OSError:
            logger.exception('Failed to remove old export %s', path)


def start_cleanup_thread():
    """Purge idle sessions and stale exports every CLEANUP_INTERVAL seconds."""
    def cleaner():
        while True:
            max_age = app.config['SESSION_MAX_AGE']
            sessions.purge_idle(max_age)
            cleanup_old_exports(max_age)
            time.sleep(app.config['CLEANUP_INTERVAL'])

    thread = threading.Thread(target=cleaner, daemon=True)
    thread.start()
    return thread


if ENABLE_CLEANUP:
    start_cleanup_thread()


#------------------------ Routes ------------------------
#------------------------ -------------------------------

#------------------------ 0. Home ------------------------
@app.route('/')
def index():
    return {'app': 'pdf-splitter', 'sessions': len(sessions)}


#------------------------ 1. Sessions ------------------------
@app.route('/sessions', methods=['POST'])
def create_session():
    f = request.files.get('pdf')
    if not f or f.filename == '':
        return {'error': 'No file uploaded'}, 400

    if f.filename.rsplit('.', 1)[-1].lower() != 'pdf':
        return {'error': 'Only PDF files are allowed'}, 400
    filename = secure_filename(f.filename)
    # non-ASCII names can sanitize down to a bare extension
    if '.' not in filename or not filename.rsplit('.', 1)[0]:
        filename = 'document.pdf'

    session = SplitSession()
    try:
        session.load(f.read(), filename)
    except LoadFailure as e:
        logger.warning('Could not load %s: %s', filename, e)
        return {'error': f'Could not open PDF: {e}'}, 400

    sid = sessions.create(session)
    return _state(sid, session), 201


def _with_session(sid, action):
    """Run ``action(session)`` under the session lock and answer with its state."""
    session = sessions.get(sid)
    if session is None:
        return {'error': 'session not found'}, 404
    with session.lock:
        if not session.loaded:
            return {'error': 'session not found'}, 404
        session.touch()
        try:
            action(session)
        except ValueError as e:
            return {'error': str(e)}, 400
        return _state(sid, session)


@app.route('/sessions/<sid>', methods=['GET'])
def get_session(sid):
    return _with_session(sid, lambda s: None)


@app.route('/sessions/<sid>', methods=['DELETE'])
def delete_session(sid):
    if not sessions.delete(sid):
        return {'error': 'session not found'}, 404
    return {'deleted': sid}


#------------------------ 2. Page Edits ------------------------
@app.route('/sessions/<sid>/rotate', methods=['POST'])
def rotate_page(sid):
    def action(s):
        direction = _payload().get('direction', 'right')
        s.rotate(_int_field('page'), direction)
    return _with_session(sid, action)


@app.route('/sessions/<sid>/duplicate', methods=['POST'])
def duplicate_page(sid):
    return _with_session(sid, lambda s: s.duplicate(_int_field('page')))


@app.route('/sessions/<sid>/delete', methods=['POST'])
def delete_slot(sid):
    return _with_session(sid, lambda s: s.delete_slot(_int_field('slot')))


@app.route('/sessions/<sid>/split', methods=['POST'])
def toggle_split(sid):
    return _with_session(sid, lambda s: s.toggle_split(_int_field('slot')))


#------------------------ 3. Sectioning ------------------------
@app.route('/sessions/<sid>/mode', methods=['POST'])
def set_mode(sid):
    def action(s):
        mode = _payload().get('mode', 'manual')
        if mode == 'manual':
            s.use_manual_splits()
        elif mode == 'interval':
            s.use_interval(_int_field('interval'))
        else:
            raise BadField(f'unknown mode: {mode}')
    return _with_session(sid, action)


@app.route('/sessions/<sid>/skip', methods=['POST'])
def toggle_skip(sid):
    return _with_session(sid, lambda s: s.toggle_skip(_int_field('section')))


#------------------------ 4. Preview & Thumbnails ------------------------
@app.route('/sessions/<sid>/preview', methods=['POST'])
def open_preview(sid):
    return _with_session(sid, lambda s: s.open_preview(_int_field('slot')))


@app.route('/sessions/<sid>/preview', methods=['DELETE'])
def close_preview(sid):
    return _with_session(sid, lambda s: s.close_preview())


@app.route('/sessions/<sid>/preview/next', methods=['POST'])
def preview_next(sid):
    return _with_session(sid, lambda s: s.preview_next())


@app.route('/sessions/<sid>/preview/prev', methods=['POST'])
def preview_prev(sid):
    return _with_session(sid, lambda s: s.preview_prev())


def _send_render(sid, slot_of, **size):
    session = sessions.get(sid)
    if session is None:
        return ('Not found', 404)
    with session.lock:
        if not session.loaded:
            return ('Not found', 404)
        session.touch()
        slot = slot_of(session)
        if slot is None or not 0 <= slot < len(session.arrangement):
            return ('Not found', 404)
        try:
            image = session.render_slot(slot, **size)
        except Exception:
            logger.exception('Failed to render slot %s of session %s', slot, sid)
            return ('Server error', 500)
    return send_file(io.BytesIO(image_to_jpeg(image)), mimetype='image/jpeg')


@app.route('/sessions/<sid>/thumbs/<int:slot>.jpg')
def serve_thumb(sid, slot):
    return _send_render(sid, lambda s: slot, height=app.config['THUMB_HEIGHT'])


@app.route('/sessions/<sid>/preview.jpg')
def serve_preview(sid):
    return _send_render(sid, lambda s: s.preview_slot, width=app.config['PREVIEW_WIDTH'])


#------------------------ 5. Export ------------------------
def _export_links(export_id, names):
    return [{'name': n, 'url': url_for('serve_export', export_id=export_id, name=n)} for n in names]


@app.route('/sessions/<sid>/export', methods=['POST'])
def export(sid):
    session = sessions.get(sid)
    if session is None:
        return {'error': 'session not found'}, 404

    bundle = request.args.get('bundle') == 'zip'
    export_id = uuid.uuid4().hex
    export_dir = os.path.join(app.config['OUTPUT_FOLDER'], export_id)
    produced = {}

    def deliver(name, data):
        if bundle:
            produced[name] = data
            return
        os.makedirs(export_dir, exist_ok=True)
        with open(os.path.join(export_dir, name), 'wb') as fh:
            fh.write(data)

    with session.lock:
        # purged while this request waited for the lock
        if not session.loaded:
            return {'error': 'session not found'}, 404
        session.touch()
        try:
            names = session.export(deliver)
        except ExportFailure as e:
            files = [] if bundle else _export_links(export_id, e.delivered)
            return {'error': 'There was an error generating the split PDFs. Please try again.',
                    'detail': str(e), 'export_id': export_id, 'files': files}, 500
        stem = (session.filename or 'document.pdf').rsplit('.', 1)[0]

    if bundle:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, 'w', zipfile.ZIP_DEFLATED) as zf:
            for name in names:
                zf.writestr(name, produced[name])
        buf.seek(0)
        return send_file(buf, as_attachment=True, download_name=f'{stem}_split.zip',
                         mimetype='application/zip')

    return {'export_id': export_id, 'files': _export_links(export_id, names)}


@app.route('/exports/<export_id>/<name>')
def serve_export(export_id, name):
    path = os.path.join(app.config['OUTPUT_FOLDER'], secure_filename(export_id), secure_filename(name))
    if not os.path.exists(path):
        logger.warning('serve_export: requested file not found: %s', path)
        return ('Not found', 404)
    return send_file(path, as_attachment=True, download_name=name, mimetype='application/pdf')


#------------------------ Main ------------------------
if __name__ == '__main__':
    bind_host = os.environ.get('BIND_HOST', '127.0.0.1')
    port = int(os.environ.get('PORT', 5000))

    logger.info(f'Starting server on http://{bind_host}:{port}')

    try:
        app.run(host=bind_host, port=port, debug=os.environ.get('FLASK_DEBUG') == '1')
    except OSError:
        logger.exception('Failed to bind server on %s:%d', bind_host, port)
        raise
