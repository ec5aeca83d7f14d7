"""
Guidance module selection for Moodle plugin development agents.

The engine turns raw context signals into an ordered list of guidance modules:
- Signal collection (repo name, branch, request text, changed files)
- Detection of plugin category + task type from fixed rule tables
- Composition of mandatory, plugin, task and triggered pattern modules
- Loading module text in selection order
"""
