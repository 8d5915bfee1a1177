import os
import socket
import sys

from edutrack import create_app
from config import config_by_name

# Expose a WSGI-compatible app object for production servers (e.g., gunicorn, waitress)
app = create_app(config_by_name.get(os.getenv('APP_ENV', 'development'), config_by_name['development']))


def check_port(port):
    """Check if a port is available"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    result = sock.connect_ex(('127.0.0.1', port))
    sock.close()
    return result != 0


def find_available_port(start_port=3000, max_port=3100):
    """Find an available port starting from start_port"""
    for port in range(start_port, max_port):
        if check_port(port):
            return port
    return None


def print_startup_info(port):
    print("Starting EduTrack API")
    print("=" * 50)
    print(f"Local URL:    http://localhost:{port}")
    print(f"Health check: http://localhost:{port}/health")
    print(f"Environment:  {app.config['APP_ENV']}")
    print("=" * 50)
    print("Seed sample data with: flask --app app seed-db")
    print("=" * 50)


def main():
    """Main startup function for developer runs"""
    port = int(os.getenv('PORT', 0)) or find_available_port()
    if not port:
        print("No available ports found in range 3000-3100")
        return False

    print_startup_info(port)
    app.run(
        host='0.0.0.0',
        port=port,
        debug=app.config['APP_ENV'] == 'development',
        use_reloader=False
    )
    return True


if __name__ == '__main__':
    try:
        sys.exit(0 if main() else 1)
    except KeyboardInterrupt:
        print("\nEduTrack API stopped")
        sys.exit(0)
