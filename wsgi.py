from cloudrent import create_app
from cloudrent.config import ProductionConfig

# Um único worker: as filas de alocação/provisionamento vivem no processo
app = create_app(ProductionConfig)
app.extensions['lifecycle'].start_scheduler()

if __name__ == '__main__':
    app.run()
