"""Helper operations used by DockerRuntime."""
