import os

from fliply_auth import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=True, port=int(os.getenv('PORT', '6500')))
