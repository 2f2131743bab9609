try:
    from backend.notabot.server import create_app
    from backend.notabot.utils.logger import setup_logger
except ImportError:  # pragma: no cover
    from notabot.server import create_app
    from notabot.utils.logger import setup_logger

setup_logger()
app, socketio = create_app()
