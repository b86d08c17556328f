"""shipctl - build, publish and deploy a single service to Kubernetes."""

__version__ = "0.1.0"
