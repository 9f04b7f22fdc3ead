import logging
from dotenv import load_dotenv

from slack_interactive import app

load_dotenv()

# Elastic Beanstalk / gunicorn entry point
application = app

if __name__ == "__main__":
    logging.getLogger(__name__).info("Starting Slack task bot on port 5000")
    app.run(host="0.0.0.0", port=5000)
