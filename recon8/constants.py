"""
Shared module to hold constant values for the library
"""

# Annotation that marks an object as requesting CA bundle injection
INJECT_CABUNDLE_ANNOTATION_NAME = "service.alpha.openshift.io/inject-cabundle"

# The single data key that holds the injected CA bundle
INJECTION_DATA_KEY = "service-ca.crt"

# Operator condition types
AVAILABLE_CONDITION = "Available"
PROGRESSING_CONDITION = "Progressing"
FAILING_CONDITION = "Failing"

# Kubernetes string values for a condition status
CONDITION_TRUE = "True"
CONDITION_FALSE = "False"

# Deployment identifiers used by the status aggregation
DEPLOYMENT_KIND = "Deployment"
DEPLOYMENT_API_VERSION = "apps/v1"

# Delimiter used for nested dict keys
NESTED_DICT_DELIM = "."
