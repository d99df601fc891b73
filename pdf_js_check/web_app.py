from __future__ import annotations

import tempfile
from pathlib import Path

from flask import Flask, jsonify, request
from werkzeug.utils import secure_filename

from .detector import DetectorConfig, PdfJavaScriptDetector


def create_app(config: DetectorConfig | None = None) -> Flask:
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 50 * 1024 * 1024  # 50MB
    detector = PdfJavaScriptDetector(config)

    @app.get("/")
    def index():
        return jsonify(
            {
                "service": "pdf-js-check",
                "usage": "POST a PDF as multipart field 'pdf' to /scan",
            }
        )

    @app.post("/scan")
    def scan():
        upload = request.files.get("pdf")
        if upload is None or upload.filename == "":
            return jsonify({"error": "Please choose a PDF file first."}), 400

        filename = secure_filename(upload.filename) or "upload.pdf"
        if not filename.lower().endswith(".pdf"):
            return jsonify({"error": "Only .pdf files are supported."}), 400

        pdf_bytes = upload.read()
        if not pdf_bytes:
            return jsonify({"error": "Uploaded file is empty."}), 400

        with tempfile.TemporaryDirectory() as td:
            temp_path = Path(td) / filename
            temp_path.write_bytes(pdf_bytes)
            result = detector.detect(temp_path)

        return jsonify({"file": filename, "detected": result.detected, "used_repair": result.used_repair})

    return app


if __name__ == "__main__":
    create_app().run(host="127.0.0.1", port=5000, debug=False)
