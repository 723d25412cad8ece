"""Request and reply records of a replicated key/value service."""