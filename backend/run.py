import click

from gridduel import create_app, socketio

app = create_app()


@click.command()
@click.option('--host', default=None, help='Interface to bind (defaults to HOST).')
@click.option('--port', default=None, type=int, help='Port to listen on (defaults to PORT).')
@click.option('--debug/--no-debug', default=False, help='Run with the Flask debugger.')
def run(host, port, debug):
    """Start the Socket.IO game server."""
    socketio.run(
        app,
        host=host or app.config['HOST'],
        port=port or app.config['PORT'],
        debug=debug,
        allow_unsafe_werkzeug=True,
    )


if __name__ == '__main__':
    run()
