
class Route:
    """
    Maps a method and a path to a handler method name.
    Exact routes match the whole path, prefix routes match the start of the
    path and hand the rest of it to the handler as its parameter.
    """
    def __init__(self, method:str, path:str, handler:str, prefix:bool = False):
        self.method = method.upper()
        self.path = path
        self.handler = handler
        self.prefix = prefix

    def match(self, method:str, path:str):
        if method.upper() != self.method:
            return False, None
        if self.prefix is True:
            if path.startswith(self.path):
                return True, path[len(self.path):]
            return False, None
        if path == self.path:
            return True, None
        return False, None

    def __repr__(self):
        return 'Route(%s %s%s -> %s)' % (self.method, self.path, '*' if self.prefix else '', self.handler)


class Router:
    """First matching route wins, unmatched requests go to the fallback"""
    def __init__(self, routes, fallback:str):
        self.routes = list(routes)
        self.fallback = fallback

    def resolve(self, method:str, path:str):
        for route in self.routes:
            matched, param = route.match(method, path)
            if matched is True:
                return route.handler, param
        return self.fallback, None
