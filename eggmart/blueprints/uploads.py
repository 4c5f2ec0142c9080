from flask import (
    Blueprint,
    current_app,
    jsonify,
    request,
    send_from_directory,
    url_for,
)
from werkzeug.utils import secure_filename
from eggmart.middleware import auth_required
import logging
import os
import uuid

logger = logging.getLogger(__name__)

bp = Blueprint('uploads', __name__)


def _upload_dir():
    folder = current_app.config.get('UPLOAD_FOLDER')
    if not folder:
        folder = os.path.join(
            current_app.static_folder,
            current_app.config['UPLOAD_SUBDIR'])
    os.makedirs(folder, exist_ok=True)
    return folder


@bp.route('/api/uploads', methods=['POST'])
@auth_required
def upload_images(auth):
    files = [f for f in request.files.getlist('files') if f and f.filename]
    if not files:
        return jsonify({'error': 'No files uploaded'}), 400

    allowed = current_app.config['ALLOWED_IMAGE_EXTENSIONS']
    exts = []
    for f in files:
        filename = secure_filename(f.filename or '')
        ext = (filename.rsplit('.', 1)[-1] if '.' in filename else '').lower()
        if ext not in allowed:
            return jsonify({
                'error': (
                    'Unsupported image type '
                    f"({'/'.join(allowed)} only)"
                )
            }), 400
        exts.append(ext)

    abs_dir = _upload_dir()
    saved = []
    for f, ext in zip(files, exts):
        new_name = f"{uuid.uuid4().hex}.{ext}"
        abs_path = os.path.join(abs_dir, new_name)
        f.save(abs_path)
        saved.append({
            'url': url_for('uploads.uploaded_file', filename=new_name),
            'name': secure_filename(f.filename) or new_name,
            'size': os.path.getsize(abs_path),
        })

    logger.info(
        "User %s uploaded %s image(s)", auth.user_id, len(saved))
    return jsonify({
        'urls': [item['url'] for item in saved],
        'files': saved,
    })


@bp.route('/uploads/<path:filename>', methods=['GET'])
def uploaded_file(filename):
    return send_from_directory(_upload_dir(), filename)
