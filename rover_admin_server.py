import os

from rover_admin import create_app

app = create_app()

if __name__ == "__main__":
    # Run the application
    app.run(debug=app.config.get("DEBUG", False), host="0.0.0.0", port=int(os.getenv("PORT", 5000)))
