"""GraphQL documents for the AniList API."""

from aniq.domain.models.common import GraphQLQuery

GET_TOP_ANIME = GraphQLQuery("""
query GetTopAnime($page: Int, $perPage: Int, $sort: [MediaSort]) {
  Page(page: $page, perPage: $perPage) {
    media(sort: $sort, type: ANIME) {
      id
    }
  }
}
""")

GET_ANIME_BY_GENRES = GraphQLQuery("""
query GetAnimeByGenres($perPage: Int, $genres: [String], $startYear: FuzzyDateInt, $endYear: FuzzyDateInt) {
  Page(page: 1, perPage: $perPage) {
    media(
      type: ANIME,
      genre_in: $genres,
      startDate_greater: $startYear,
      startDate_lesser: $endYear
    ) {
      id
    }
  }
}
""")

GET_TOP_ANIME_BY_YEAR = GraphQLQuery("""
query GetTopAnimeByYear($perPage: Int, $startYear: FuzzyDateInt, $endYear: FuzzyDateInt) {
  Page(page: 1, perPage: $perPage) {
    media(
      type: ANIME,
      sort: [POPULARITY_DESC],
      startDate_greater: $startYear,
      startDate_lesser: $endYear
    ) {
      id
    }
  }
}
""")

# Characters only; titles are fetched separately for the anime that contribute.
GET_CHARACTERS_BATCH = GraphQLQuery("""
query GetCharactersBatch($ids: [Int], $role: CharacterRole) {
  Page(page: 1, perPage: 50) {
    media(id_in: $ids, type: ANIME) {
      id
      characters(role: $role, sort: [ROLE, RELEVANCE, ID]) {
        nodes {
          id
          name {
            full
          }
          image {
            large
          }
        }
      }
    }
  }
}
""")

GET_TITLES_BATCH = GraphQLQuery("""
query GetTitlesBatch($ids: [Int]) {
  Page(page: 1, perPage: 50) {
    media(id_in: $ids, type: ANIME) {
      id
      title {
        romaji
        english
      }
    }
  }
}
""")

GET_ANIME_DETAILS = GraphQLQuery("""
query GetAnimeDetails($id: Int) {
  Media(id: $id) {
    title {
      romaji
      english
    }
    studios {
      nodes {
        name
      }
    }
    staff {
      edges {
        role
        node {
          name {
            full
          }
        }
      }
    }
    startDate {
      year
    }
    genres
  }
}
""")
