"""CDK application entry point for the web application infrastructure.

This module initializes the AWS CDK application, resolves the
deployment inputs and declares the web application stack.
"""
import aws_cdk as cdk
from webappinfrastack.webapp_stack import build_webapp_stack

app = cdk.App()

webapp_stack = build_webapp_stack(app, "WebAppStack")

app.synth()
