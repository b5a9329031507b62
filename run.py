# run.py
from gunicorn.app.base import BaseApplication
from gunicorn.util import import_app


class FlashbackApplication(BaseApplication):
    def __init__(self, app_uri, options=None):
        self.app_uri = app_uri
        self.options = options or {}
        super().__init__()

    def load_config(self):
        for key, value in self.options.items():
            self.cfg.set(key, value)

    def load(self):
        return import_app(self.app_uri)


def main():
    # One worker: each worker would open its own event stream connection
    options = {
        "bind": "0.0.0.0:8000",
        "workers": 1,
        "worker_class": "uvicorn.workers.UvicornWorker",
        "proc_name": "flashback",
    }

    FlashbackApplication("flashback.main:app", options).run()

if __name__ == "__main__":
    main()
