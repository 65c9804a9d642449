"""
Shared constants for relation editing.
"""

# Edge label used in the relation list when an edge has none
DEFAULT_RELATION_LABEL = 'relation'

# Separator between source and target display names in the relation list
RELATION_ARROW = '→'

# Prefix for ids of user-created relations
RELATION_ID_PREFIX = 'rel_'
