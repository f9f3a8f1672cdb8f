# init_db.py
import logging

from app.db.session import engine
from app.db.base import Base

# IMPORTANTE: Importar todos os modelos aqui para que o SQLAlchemy
# saiba que eles existem antes de criar as tabelas
from app.models.user import User
from app.models.league import League, LeagueMember, RaceLeagueWinner
from app.models.race import Race, RaceResult
from app.models.market import Market
from app.models.bet import Bet

logger = logging.getLogger(__name__)


def init_db():
    logger.info("Criando tabelas...")

    # Cria todas as tabelas definidas nos modelos importados acima
    Base.metadata.create_all(bind=engine)

    logger.info("Tabelas criadas com sucesso!")

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
