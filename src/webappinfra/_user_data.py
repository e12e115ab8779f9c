"""Boot script that installs Node.js and starts the application under PM2."""

APP_PORT = 3001
APP_HOME = "/home/ubuntu/app"
APP_DIR = f"{APP_HOME}/video-to-mp3-app"
NODE_VERSION = "22"
NVM_VERSION = "v0.40.2"
PM2_PROCESS_NAME = "video-converter"

_TEMPLATE = r"""#!/bin/bash
# Exit on first error
set -e
echo ">>>> Starting UserData script..."

# --- Install git ---
echo ">>>> Installing git..."
sudo apt-get update -y && sudo apt-get install -y git
echo ">>>> Git installed."

# --- Clone the repo into {app_home} ---
echo ">>>> Cloning repository {repo_url} into {app_home}..."
sudo -u ubuntu git clone {repo_url} {app_home}
echo ">>>> Clone finished."

# --- Install NVM and Node.js as ubuntu user ---
echo ">>>> Installing NVM and Node.js {node_version} for user ubuntu..."
sudo -i -u ubuntu bash << EOF
echo ">>>> Running as ubuntu user for NVM install..."
curl -o- https://raw.githubusercontent.com/nvm-sh/nvm/{nvm_version}/install.sh | bash
\. "\$HOME/.nvm/nvm.sh"
nvm install {node_version}
nvm use {node_version}
nvm alias default {node_version}
echo ">>>> Node.js installed. Verifying versions..."
node -v
nvm current
npm -v
EOF
echo ">>>> Finished NVM and Node.js installation."

# --- Install dependencies and start the app with PM2 ---
echo ">>>> Setting up application in {app_dir}..."
sudo -i -u ubuntu bash << EOF
\. "\$HOME/.nvm/nvm.sh"
cd {app_dir}
echo ">>>> Running npm install..."
npm install
echo ">>>> npm install finished."
echo ">>>> Installing PM2 globally..."
npm install pm2 -g
echo ">>>> Starting server.js with PM2..."
pm2 start server.js --name {process_name}
echo ">>>> PM2 process started."
EOF
echo ">>>> Application setup finished."

echo ">>>> UserData script finished successfully."
"""


def render_user_data(repo_url: str) -> str:
    """Render the boot script for the given application repository.

    The script is fail-fast and not idempotent: running it a second time
    on the same machine fails at the clone step.
    """
    return _TEMPLATE.format(
        repo_url=repo_url,
        app_home=APP_HOME,
        app_dir=APP_DIR,
        node_version=NODE_VERSION,
        nvm_version=NVM_VERSION,
        process_name=PM2_PROCESS_NAME,
    )
