"""Constants for the tuned job runner."""

import os

# Retry policy
DEFAULT_MAX_ATTEMPTS = 2
TUNING_JOB_RETRY_COUNT = "tuning.job.retry.count"

# Tag placed on every attempt config so downstream components can tell a
# fresh run from a fallback run
AUTO_TUNING_RETRY = "auto.tuning.retry"

# Tuning service
AUTO_TUNING_ENABLED = "auto.tuning.enabled"
AUTO_TUNING_END_POINT = "auto.tuning.end.point"
AUTO_TUNING_TIMEOUT = "auto.tuning.timeout"
AUTO_TUNING_JOB_TYPE = "auto.tuning.job.type"
AUTO_TUNING_OPTIMIZATION_METRIC = "auto.tuning.optimization.metric"
DEFAULT_TUNING_TIMEOUT_S = float(os.getenv("TUNING_TIMEOUT_S", "10"))
TUNING_CLIENT_NAME = "autotune-runner"

# Configuration injection
INJECT_PREFIX = "hadoop-inject."
INJECT_TUNING_FILE = "_tuning-inject.xml"
INJECT_FILE_ENV = "TUNING_INJECT_FILE"

# Job identity properties copied into the injected configuration
JOB_ID = "job.id"
PROJECT_NAME = "project.name"
FLOW_ID = "flow.id"
EXEC_ID = "exec.id"
SUBMIT_USER = "submit.user"
JOB_LINK = "job.link"
EXECUTION_LINK = "execution.link"
PROJECT_VERSION = "project.version"
WORKFLOW_LINK = "workflow.link"
JOBEXEC_LINK = "jobexec.link"
ATTEMPT_LINK = "attempt.link"
OUT_NODES = "out.nodes"
IN_NODES = "in.nodes"
PROJECT_LAST_CHANGED_DATE = "project.last.changed.date"
PROJECT_LAST_CHANGED_BY = "project.last.changed.by"

COMMON_JOB_PROPERTIES = [
    EXEC_ID,
    FLOW_ID,
    JOB_ID,
    PROJECT_NAME,
    PROJECT_VERSION,
    EXECUTION_LINK,
    JOB_LINK,
    WORKFLOW_LINK,
    JOBEXEC_LINK,
    ATTEMPT_LINK,
    OUT_NODES,
    IN_NODES,
    PROJECT_LAST_CHANGED_DATE,
    PROJECT_LAST_CHANGED_BY,
    SUBMIT_USER,
]

# Working directory and logs
WORKING_DIR = "working.dir"
JOB_LOG_FILE_PROP = "job.log.file"
JOB_LOG_FILE_ENV = "JOB_LOG_FILE"
AUTO_TUNING_RETRY_ENV = "AUTO_TUNING_RETRY"

# Identity delegation
SHOULD_PROXY = "job.should.proxy"
USER_TO_PROXY = "user.to.proxy"
HADOOP_TOKEN_FILE_LOCATION = "HADOOP_TOKEN_FILE_LOCATION"
HADOOP_PROXY_USER = "HADOOP_PROXY_USER"

# Failure classification
TUNING_ERROR_PATTERNS_FILE = "tuning.error.patterns.file"
LOG_DUMP_BANNER = "Job log file dump:"
