# -*- coding: utf-8 -*-
import os

from opsflow.factory import create_app

app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    app.run(host="0.0.0.0", port=port)
