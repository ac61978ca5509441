#!/usr/bin/env python3
import urllib.parse
from cloudrent import create_app
from cloudrent.config import DevelopmentConfig

app = create_app(DevelopmentConfig)
app.extensions['lifecycle'].start_scheduler()

def list_routes():
    output = []
    for rule in app.url_map.iter_rules():
        methods = ','.join(rule.methods)
        line = urllib.parse.unquote(f"{rule.endpoint:35s} {methods:20s} {rule}")
        output.append(line)

    print("\n🚀 CloudRent Backend Rodando!")
    print("===========================")
    print("Rotas Ativas:")
    for line in sorted(output):
        print(line)
    print("===========================\n")

if __name__ == '__main__':
    list_routes()
    # Sem reloader: o processo filho duplicaria filas e agendador
    app.run(host='0.0.0.0', port=5000, use_reloader=False)
