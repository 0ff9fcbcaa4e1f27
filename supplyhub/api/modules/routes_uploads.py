# Upload Routes — signed upload URLs and local blob serving

from flask import request, send_file

from supplyhub.api.common import bp, ok, identity
from supplyhub.core import storage
from supplyhub.core.errors import not_found
from supplyhub.core.security import rate_limit


@bp.route("/api/uploads/url", methods=["POST"])
@rate_limit("api")
def api_upload_url():
    """Vendor/admin: → {ok, upload_url}. POST the file there within the hour."""
    return ok(upload_url=storage.generate_upload_url(identity(), request.host_url))


@bp.route("/api/uploads/<token>", methods=["POST"])
@rate_limit("heavy")
def api_upload(token):
    """Multipart file=<image> or raw body → {ok, storage_id, url}"""
    f = request.files.get("file")
    if f is not None:
        data, content_type = f.read(), f.mimetype
    else:
        data, content_type = request.get_data(), request.content_type
    storage_id = storage.store_blob(token, data, content_type or "")
    return ok(storage_id=storage_id, url=storage.cdn_url(storage_id)), 201


@bp.route("/files/<storage_id>")
def serve_blob(storage_id):
    path = storage.blob_path(storage_id)
    if not path:
        raise not_found("File not found")
    return send_file(path)
