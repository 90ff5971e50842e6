"""
Services layer of the ImageJ launcher.

- processing: ImageJ processes, progress parsing and installation lookup
- io: image metadata and layer configuration files
- install: plugin downloads
- ui: dialogs
"""
