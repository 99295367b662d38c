import os

MATRIX_YAML = """\
suite:
  command: "test {{tool_version}} != {failing_version}"
catalog:
  versions: ["6.9.4", "7.3.3", "7.6.4"]
provisioner:
  type: local
execution:
  concurrency: 2
  retry_backoff_seconds: 0
  output_dir: logs
matrices:
  - name: java11
    runtime: {{name: java, version: "11"}}
    tool_range: "7.3"
  - name: java17
    runtime: {{name: java, version: "17"}}
    tool_range: "[7.3,*)"
"""


def write_matrix_file(directory, failing_version="0.0", name="matrix.yaml", extra=""):
    path = os.path.join(directory, name)
    with open(path, "w") as f:
        f.write(MATRIX_YAML.format(failing_version=failing_version) + extra)
    return path
